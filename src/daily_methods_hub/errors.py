from __future__ import annotations


class HubError(Exception):
    """Base class for expected, user-facing failures."""


class ValidationError(HubError, ValueError):
    pass


class DuplicateEntryError(HubError):
    pass


class DuplicateReferralError(DuplicateEntryError):
    pass


class NotFoundError(HubError):
    pass


class PermissionDeniedError(HubError):
    pass
