from __future__ import annotations

import hmac
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from daily_methods_hub import service
from daily_methods_hub.config import Settings, load_settings
from daily_methods_hub.db import Database
from daily_methods_hub.db_constants import APP_CONFIG_DEFAULTS
from daily_methods_hub.jobs_runner import run_check_streaks
from daily_methods_hub.logging_setup import setup_logging
from daily_methods_hub.points import encode_referral_code
from daily_methods_hub.service import ActionResult
from daily_methods_hub.time_utils import local_date, now_utc, parse_iso_date

STATUS_BY_KIND = {
    "validation": 400,
    "not_found": 404,
    "duplicate": 409,
    "permission": 403,
    "unexpected": 500,
}


def _coerce_value(key: str, value: Any) -> Any:
    default = APP_CONFIG_DEFAULTS.get(key)
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)
    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            return default
    return value


def _require_admin(request: Request, token: str | None) -> None:
    if not token:
        raise HTTPException(status_code=403, detail="Admin access required")
    header = request.headers.get("x-admin-token") or ""
    if not hmac.compare_digest(header.encode(), token.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


def _require_cron(request: Request, secret: str | None) -> None:
    header = request.headers.get("authorization") or ""
    if not secret or not hmac.compare_digest(header.encode(), f"Bearer {secret}".encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


def _query_date(raw: str | None, name: str) -> date | None:
    if raw is None or raw == "":
        return None
    parsed = parse_iso_date(raw)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"Invalid {name} (use YYYY-MM-DD)")
    return parsed


def _respond(result: ActionResult) -> JSONResponse:
    body: dict[str, Any] = {"success": result.success}
    if result.data is not None:
        body["data"] = jsonable_encoder(result.data)
    if result.error is not None:
        body["error"] = result.error
    if result.message is not None:
        body["message"] = result.message
    status = 200 if result.success else STATUS_BY_KIND.get(result.kind or "", 400)
    return JSONResponse(status_code=status, content=body)


class EarningCreateRequest(BaseModel):
    method_id: int
    amount: float
    entry_date: str
    notes: str | None = None


class EarningUpdateRequest(BaseModel):
    method_id: int | None = None
    amount: float | None = None
    entry_date: str | None = None
    notes: str | None = None


class MethodRequest(BaseModel):
    title: str
    description: str = ""
    category: str = "Other"
    earnings_hint: str = ""
    difficulty: str = "Easy"
    time_required: str = ""
    link: str | None = None
    referral_code: str | None = None
    icon_url: str | None = None
    is_active: bool = True
    is_public: bool = False


class MethodUpdateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    category: str | None = None
    earnings_hint: str | None = None
    difficulty: str | None = None
    time_required: str | None = None
    link: str | None = None
    referral_code: str | None = None
    icon_url: str | None = None
    is_active: bool | None = None
    is_public: bool | None = None


class CsvImportRequest(BaseModel):
    csv: str


class ReferralRequest(BaseModel):
    code: str


class ConfigUpdateRequest(BaseModel):
    updates: dict[str, Any] = Field(default_factory=dict)
    actor: str = "admin"
    note: str | None = None


def build_api_app(
    db: Database,
    settings: Settings,
    clock: Callable[[], datetime] = now_utc,
) -> FastAPI:
    app = FastAPI(title="Daily Methods Hub", version="1.0.0")
    tz = settings.tz

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        detail = f"{where}: {first.get('msg', 'invalid value')}" if where else "Invalid request"
        return JSONResponse(status_code=400, content={"success": False, "error": detail})

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc.detail)})

    def _user(request: Request) -> str:
        user_id = (request.headers.get("x-user-id") or "").strip()
        if not user_id:
            raise HTTPException(status_code=401, detail="Not authenticated")
        db.upsert_profile(user_id, clock())
        return user_id

    @app.get("/api/earnings")
    def list_earnings(request: Request, start: str | None = None, end: str | None = None) -> JSONResponse:
        user_id = _user(request)
        return _respond(
            service.list_earnings(db, user_id, start=_query_date(start, "start"), end=_query_date(end, "end"))
        )

    @app.post("/api/earnings")
    def create_earning(request: Request, payload: EarningCreateRequest) -> JSONResponse:
        user_id = _user(request)
        result = service.log_earning(
            db,
            user_id,
            payload.method_id,
            payload.amount,
            payload.entry_date,
            clock(),
            notes=payload.notes,
        )
        return _respond(result)

    @app.get("/api/earnings/summary")
    def earnings_summary(request: Request) -> JSONResponse:
        return _respond(service.earnings_summary(db, _user(request), clock(), tz_name=tz))

    @app.get("/api/earnings/analytics")
    def earnings_analytics(request: Request) -> JSONResponse:
        return _respond(service.earnings_analytics(db, _user(request), clock(), tz_name=tz))

    @app.get("/api/earnings/export")
    def export_earnings(request: Request, start: str | None = None, end: str | None = None):
        user_id = _user(request)
        result = service.export_csv(db, user_id, start=_query_date(start, "start"), end=_query_date(end, "end"))
        if not result.success:
            return _respond(result)
        filename = f"earnings-{local_date(clock(), tz).isoformat()}.csv"
        return PlainTextResponse(
            result.data,
            media_type="text/csv",
            headers={"content-disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/api/earnings/import")
    def import_earnings(request: Request, payload: CsvImportRequest) -> JSONResponse:
        return _respond(service.import_csv(db, _user(request), payload.csv, clock()))

    @app.put("/api/earnings/{entry_id}")
    def update_earning(entry_id: int, request: Request, payload: EarningUpdateRequest) -> JSONResponse:
        user_id = _user(request)
        fields = payload.model_dump(exclude_unset=True)
        return _respond(service.update_earning(db, user_id, entry_id, fields, clock()))

    @app.delete("/api/earnings/{entry_id}")
    def delete_earning(entry_id: int, request: Request) -> JSONResponse:
        return _respond(service.delete_earning(db, _user(request), entry_id))

    @app.get("/api/streak")
    def get_streak(request: Request) -> JSONResponse:
        return _respond(service.get_streak(db, _user(request), clock()))

    @app.get("/api/streak/status")
    def streak_status(request: Request) -> JSONResponse:
        return _respond(service.streak_status(db, _user(request), clock(), tz_name=tz))

    @app.get("/api/tasks")
    def available_tasks(request: Request) -> JSONResponse:
        return _respond(service.available_tasks(db, _user(request), clock(), tz_name=tz))

    @app.post("/api/tasks/{method_id}/complete")
    def complete_task(method_id: int, request: Request) -> JSONResponse:
        return _respond(service.complete_task(db, _user(request), method_id, clock()))

    @app.get("/api/methods")
    def list_methods(request: Request, active_only: bool = False) -> JSONResponse:
        return _respond(service.list_methods(db, _user(request), active_only=active_only))

    @app.post("/api/methods")
    def create_method(request: Request, payload: MethodRequest) -> JSONResponse:
        user_id = _user(request)
        return _respond(service.create_method(db, user_id, payload.model_dump(), clock()))

    @app.get("/api/methods/stats")
    def method_stats(request: Request) -> JSONResponse:
        return _respond(service.method_stats(db, _user(request), clock(), tz_name=tz))

    @app.get("/api/methods/{method_id}")
    def get_method(method_id: int, request: Request) -> JSONResponse:
        return _respond(service.get_method(db, _user(request), method_id))

    @app.put("/api/methods/{method_id}")
    def update_method(method_id: int, request: Request, payload: MethodUpdateRequest) -> JSONResponse:
        user_id = _user(request)
        fields = payload.model_dump(exclude_unset=True)
        return _respond(service.update_method(db, user_id, method_id, fields, clock()))

    @app.delete("/api/methods/{method_id}")
    def delete_method(method_id: int, request: Request) -> JSONResponse:
        return _respond(service.delete_method(db, _user(request), method_id))

    @app.post("/api/methods/{method_id}/duplicate")
    def duplicate_method(method_id: int, request: Request) -> JSONResponse:
        return _respond(service.duplicate_method(db, _user(request), method_id, clock()))

    @app.get("/api/explore")
    def explore(request: Request, category: str | None = None) -> JSONResponse:
        _user(request)
        return _respond(service.list_public_methods(db, category=category))

    @app.post("/api/explore/{method_id}/copy")
    def copy_method(method_id: int, request: Request) -> JSONResponse:
        return _respond(service.copy_public_method(db, _user(request), method_id, clock()))

    @app.get("/api/referrals")
    def referral_stats(request: Request) -> JSONResponse:
        return _respond(service.referral_stats(db, _user(request), clock()))

    @app.post("/api/referrals")
    def record_referral(request: Request, payload: ReferralRequest) -> JSONResponse:
        return _respond(service.record_referral(db, _user(request), payload.code, clock()))

    @app.get("/api/referrals/code")
    def referral_code(request: Request) -> dict[str, Any]:
        user_id = _user(request)
        return {"success": True, "data": {"code": encode_referral_code(user_id)}}

    @app.get("/api/points")
    def get_points(request: Request) -> JSONResponse:
        return _respond(service.get_points(db, _user(request), clock()))

    @app.get("/api/notifications")
    def list_notifications(request: Request, unread_only: bool = False) -> JSONResponse:
        return _respond(service.list_notifications(db, _user(request), unread_only=unread_only))

    @app.get("/api/notifications/unread-count")
    def unread_notification_count(request: Request) -> JSONResponse:
        return _respond(service.unread_notification_count(db, _user(request)))

    @app.post("/api/notifications/read-all")
    def read_all_notifications(request: Request) -> JSONResponse:
        return _respond(service.mark_all_notifications_read(db, _user(request)))

    @app.post("/api/notifications/{notification_id}/read")
    def read_notification(notification_id: int, request: Request) -> JSONResponse:
        return _respond(service.mark_notification_read(db, _user(request), notification_id))

    @app.delete("/api/notifications/{notification_id}")
    def delete_notification(notification_id: int, request: Request) -> JSONResponse:
        return _respond(service.delete_notification(db, _user(request), notification_id))

    @app.get("/api/admin/config")
    def admin_config(request: Request) -> dict[str, Any]:
        _require_admin(request, settings.admin_token)
        return {"config": db.get_app_config(), "defaults": APP_CONFIG_DEFAULTS}

    @app.post("/api/admin/config")
    def admin_update_config(request: Request, payload: ConfigUpdateRequest) -> dict[str, Any]:
        _require_admin(request, settings.admin_token)
        sanitized: dict[str, Any] = {}
        for key, value in payload.updates.items():
            if key not in APP_CONFIG_DEFAULTS:
                continue
            sanitized[key] = _coerce_value(key, value)
        cfg = db.set_app_config(sanitized, clock(), actor=payload.actor, note=payload.note)
        return {"ok": True, "updated_count": len(sanitized), "config": cfg}

    @app.get("/api/admin/audit")
    def admin_audit(request: Request, limit: int = 100) -> dict[str, Any]:
        _require_admin(request, settings.admin_token)
        return {"rows": db.list_admin_audit(limit=limit)}

    @app.get("/api/cron/check-streaks")
    def cron_check_streaks(request: Request) -> dict[str, Any]:
        _require_cron(request, settings.cron_secret)
        result = run_check_streaks(db, settings, clock())
        if result is None:
            return {"success": True, "message": "Streak check disabled"}
        return {"success": True, "message": "Streak check completed", "results": jsonable_encoder(result)}

    return app


def run_api() -> None:
    setup_logging()
    settings = load_settings()
    db = Database(settings.database_path)
    app = build_api_app(db, settings)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
