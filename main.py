"""Story Relay — dev launcher. Starts the API server in watch mode."""

import argparse
import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Story Relay dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--no-reload", action="store_true",
                        help="Disable auto-reload on code changes")
    parser.add_argument("--log-level", default="info",
                        help="Logging level (default: info)")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # The reloader imports the app in a child process; pass the data dir on
    if args.data_dir:
        os.environ["DATA_DIR"] = str(args.data_dir.resolve())

    print(f"Starting backend on http://localhost:{PORT} ...")
    uvicorn.run(
        "backend.app:app",
        host=HOST,
        port=int(PORT),
        reload=not args.no_reload,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
