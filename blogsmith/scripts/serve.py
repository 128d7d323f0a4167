from __future__ import annotations

import argparse

import uvicorn

from blogsmith.dependencies import get_settings


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the blogsmith article API.")
    parser.add_argument("--host", default=None, help="Bind address (default: BLOGSMITH_HOST).")
    parser.add_argument("--port", type=int, default=None, help="Port (default: BLOGSMITH_PORT).")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = get_settings()
    uvicorn.run(
        "blogsmith.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
        log_config=None,
    )


if __name__ == "__main__":
    main()
