"""Local server entrypoint: owns the runtime and serves the chat app."""

from __future__ import annotations

import argparse

from src.contextflow.core.observability import setup_logging
from src.contextflow.runtime.service import get_runtime_service


def run_server(
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    log_level: str | None = None,
    log_format: str | None = None,
) -> int:
    setup_logging(log_level, log_format)
    runtime = get_runtime_service()
    runtime.start(source="daemon")
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - dependency error guard
        runtime.stop(source="daemon")
        raise RuntimeError("uvicorn is required to serve the chat app") from exc

    try:
        uvicorn.run("app.main:app", host=host, port=port, reload=False)
    finally:
        runtime.stop(source="daemon")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Serve the ContextFlow local chat app.")
    parser.add_argument("--host", default="127.0.0.1", help="Local bind host.")
    parser.add_argument("--port", type=int, default=8000, help="Local bind port.")
    parser.add_argument("--log-level", default=None, help="Override the configured log level.")
    parser.add_argument(
        "--log-format",
        choices=("console", "json"),
        default=None,
        help="Override the configured log renderer.",
    )
    args = parser.parse_args(argv)
    return run_server(host=args.host, port=args.port, log_level=args.log_level, log_format=args.log_format)


if __name__ == "__main__":
    raise SystemExit(main())
