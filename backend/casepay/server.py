"""
Server Launcher — Runs the API under uvicorn with structlog owning the logs.

Usage:
    casepay-server
    casepay-server --port 8000
    casepay-server --reload
"""
import argparse

import uvicorn

from casepay.config import get_settings
from casepay.logging_config import configure_logging


def build_parser(settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"{settings.APP_NAME} server")
    parser.add_argument("--host", default=settings.HOST, help=f"Bind host (default: {settings.HOST})")
    parser.add_argument("--port", type=int, default=settings.PORT, help=f"Bind port (default: {settings.PORT})")
    parser.add_argument("--reload", action="store_true", help="Enable hot reload for development")
    parser.add_argument("--workers", type=int, default=1, help="Number of workers (default: 1)")
    return parser


def main(argv=None):
    settings = get_settings()
    args = build_parser(settings).parse_args(argv)

    if args.workers > 1:
        print(f"  [!] {args.workers} workers: rate limits apply per worker")

    configure_logging(settings.LOG_LEVEL, json_logs=settings.JSON_LOGS, log_dir=settings.LOG_DIR)
    uvicorn.run(
        "casepay.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=args.workers,
        log_config=None,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
