from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from daily_methods_hub.config import load_settings
from daily_methods_hub.db import Database
from daily_methods_hub.jobs_runner import JOB_NAMES, run_job
from daily_methods_hub.logging_setup import setup_logging


def main(argv: list[str]) -> int:
    if len(argv) != 1:
        print(f"Usage: python jobs.py <{'|'.join(JOB_NAMES)}>", file=sys.stderr)
        return 2

    setup_logging()
    settings = load_settings()
    result = run_job(argv[0], Database(settings.database_path), settings)
    if result is None:
        print(f"{argv[0]}: disabled")
        return 0
    print(f"{argv[0]}: checked={result.checked} notified={result.notified} errors={len(result.errors)}")
    return 1 if result.errors else 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
