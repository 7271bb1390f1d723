#!/usr/bin/env python3
"""
Container entrypoint: run the release phase, then exec gunicorn on $PORT.

    python scripts/start.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def resolve_port(raw: str | None) -> int:
    port = (raw or "").strip()
    if not port:
        print("[start] PORT not set, defaulting to 8080", flush=True)
        return 8080
    port_int = int(port)
    if port_int < 1 or port_int > 65535:
        raise ValueError(f"port {port_int} out of range")
    return port_int


def gunicorn_argv(port: int, workers: int = 2) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        # Journal analysis calls out to the AI provider (20s client timeout)
        "--timeout", "60",
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    raw_port = os.environ.get("PORT")
    try:
        port = resolve_port(raw_port)
    except ValueError:
        print(f"[start] PORT={raw_port!r} is not an integer in 1-65535", flush=True)
        sys.exit(1)

    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"[start] release phase failed, not starting web server: {e}", flush=True)
        sys.exit(1)

    workers = int((os.environ.get("WEB_CONCURRENCY") or "2").strip())
    print(f"[start] gunicorn on :{port} with {workers} workers", flush=True)
    # exec keeps gunicorn as PID 1 so it receives container signals
    os.execvp("gunicorn", gunicorn_argv(port, workers))


if __name__ == "__main__":
    main()
