#!/usr/bin/env python3
"""Apply migrations and run the API with auto-reload.

Usage:
    python scripts/start_dev.py [--host 127.0.0.1] [--port 8000] [--skip-migrations]
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path

import uvicorn
from alembic import command
from alembic.config import Config

ROOT = Path(__file__).resolve().parent.parent
PACKAGE_DIR = ROOT / "ballotbox"


def run_migrations() -> None:
    config = Config(str(PACKAGE_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(PACKAGE_DIR / "migrations"))
    command.upgrade(config, "head")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the ballotbox development server.")
    parser.add_argument("--host", default=os.environ.get("BALLOTBOX_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("BALLOTBOX_PORT", "8000")))
    parser.add_argument("--skip-migrations", action="store_true")
    args = parser.parse_args()

    if not args.skip_migrations:
        run_migrations()
    uvicorn.run("ballotbox.main:app", host=args.host, port=args.port, reload=True, reload_dirs=[str(PACKAGE_DIR)])


if __name__ == "__main__":
    main()
