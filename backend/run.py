"""
Start the review engine API with uvicorn.

    python run.py                 # settings-driven defaults
    python run.py --reload        # auto-reload while developing
    python run.py --no-sweep      # disable the overdue sweep for this process
"""
import argparse
import os

import uvicorn


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Review & Sign-off Engine API server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Auto-reload on code changes")
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Worker processes; ignored with --reload. Each worker runs its own overdue sweep"
    )
    parser.add_argument(
        "--no-sweep",
        action="store_true",
        help="Do not start the overdue sweep in this process"
    )
    return parser.parse_args()


def main():
    args = parse_args()

    if args.no_sweep:
        # Read by pydantic-settings when the app module is imported
        os.environ["OVERDUE_SWEEP_ENABLED"] = "false"

    workers = 1 if args.reload else args.workers
    print(f"Review & Sign-off Engine on http://{args.host}:{args.port} "
          f"(reload={args.reload}, workers={workers}, sweep={not args.no_sweep})")

    uvicorn.run(
        "review_engine.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=workers
    )


if __name__ == "__main__":
    main()
