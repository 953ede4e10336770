#!/usr/bin/env python3
"""
Run the postdeck API with uvicorn.

    python run.py                  # host/port from settings, auto-reload on
    python run.py --no-reload -p 9000
    python run.py --no-scheduler   # API only, no background publishing
"""

import argparse
import os

import uvicorn
from postdeck.config import get_settings


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="LinkedIn carousel API server"
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help=f"Bind address (default: {settings.host})"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=settings.port,
        help=f"Port (default: {settings.port})"
    )
    parser.add_argument(
        "--no-reload",
        action="store_true",
        help="Disable auto-reload"
    )
    parser.add_argument(
        "--no-scheduler",
        action="store_true",
        help="Do not start the scheduled carousel publisher"
    )

    args = parser.parse_args()

    if args.no_scheduler:
        # Read by Settings in the server process (and reloader children)
        os.environ["SCHEDULER_ENABLED"] = "false"
        get_settings.cache_clear()

    scheduler_state = "off" if args.no_scheduler or not settings.scheduler_enabled else "on"
    print(f"postdeck on http://{args.host}:{args.port}  (docs: /docs, scheduler: {scheduler_state})")

    uvicorn.run(
        "postdeck.main:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
    )


if __name__ == "__main__":
    main()
