"""
Tab Grouper Backend Server Entry Point

Runs the FastAPI app with uvicorn. Install the package first:

    pip install -e .
    python examples/start_server.py --port 8000
"""

import argparse
import sys

import uvicorn

from tab_grouper.config import get_logger, get_settings, setup_logging

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the tab grouper backend")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        settings = get_settings()
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print("Check HOST_API_URL and DB_PATH in your environment or .env file.", file=sys.stderr)
        return 1

    setup_logging(settings.log_level)
    logger.info(
        f"Host bridge {settings.host_api_url}, database {settings.db_path}, "
        f"cleanup every {settings.cleanup_interval_seconds}s"
    )
    logger.info(f"API docs at http://{args.host}:{args.port}/docs")

    uvicorn.run(
        "tab_grouper.server.app:app",
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
        reload=args.reload,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
