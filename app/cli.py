"""Small CLI helpers wired to Poetry scripts for developer convenience.

Usage (from project root):
  poetry run runserver --host=0.0.0.0 --port=8000 --no-reload
  poetry run run-tests
  poetry run migrate          # defaults to `alembic upgrade head`
  poetry run init-env         # copies .env.example -> .env if missing
  poetry run bootstrap-admin  # creates the first admin from ADMIN_EMAIL or --email=
  poetry run seed-demo        # demo accounts and specializations
"""
from __future__ import annotations

import logging
import sys
import shutil
import subprocess
from pathlib import Path
from typing import List

import uvicorn

from app.core.database import SessionLocal
from app.core.logger import setup_logging
from app.services.bootstrap_service import BootstrapService

logger = logging.getLogger("app.cli")


def _args() -> List[str]:
    return sys.argv[1:]


def _option(name: str) -> str | None:
    prefix = f"--{name}="
    for a in _args():
        if a.startswith(prefix):
            return a[len(prefix):]
    return None


def runserver() -> None:
    """Run Uvicorn programmatically. Accepts simple flags:

    --host=<host>  (default 127.0.0.1)
    --port=<port>  (default 8000)
    --no-reload    (disable auto-reload)
    --reload       (enable auto-reload)
    """
    host = _option("host") or "127.0.0.1"
    port_value = _option("port")
    port = int(port_value) if port_value and port_value.isdigit() else 8000
    reload = "--no-reload" not in _args()

    print(f"Starting uvicorn on {host}:{port} (reload={reload})")
    uvicorn.run("app.main:app", host=host, port=port, reload=reload)


def run_tests() -> None:
    """Run pytest with any forwarded args."""
    cmd = ["pytest"] + _args()
    subprocess.run(cmd, check=True)


def run_migrations() -> None:
    """Run alembic. If no args provided, runs `alembic upgrade head`."""
    args = _args()
    cmd = ["alembic"] + (args or ["upgrade", "head"])
    subprocess.run(cmd, check=True)


def init_env() -> None:
    """Copy `.env.example` to `.env` if `.env` is missing."""
    root = Path(__file__).resolve().parents[1]
    src = root / ".env.example"
    dst = root / ".env"
    if dst.exists():
        print(f".env already exists at {dst}")
        return
    if not src.exists():
        print(f".env.example not found at {src}")
        return
    shutil.copy(src, dst)
    print(f"Created .env from .env.example at {dst}")


def bootstrap_admin() -> None:
    setup_logging()
    db = SessionLocal()
    try:
        password = BootstrapService.ensure_admin(db, email=_option("email"))
    finally:
        db.close()
    if password is None:
        logger.info("Administrator already exists or no email given, nothing to do")


def seed_demo() -> None:
    setup_logging()
    db = SessionLocal()
    try:
        BootstrapService.seed_demo(db)
    finally:
        db.close()


COMMANDS = {
    "runserver": runserver,
    "run-tests": run_tests,
    "migrate": run_migrations,
    "init-env": init_env,
    "bootstrap-admin": bootstrap_admin,
    "seed-demo": seed_demo,
}


if __name__ == "__main__":
    # Allow running the helpers directly: python -m app.cli runserver
    if len(sys.argv) <= 1:
        print(__doc__)
        sys.exit(0)
    cmd = sys.argv.pop(1)
    handler = COMMANDS.get(cmd)
    if handler is None:
        print(f"Unknown command: {cmd}")
        sys.exit(1)
    handler()
