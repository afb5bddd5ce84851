#!/usr/bin/env python3
"""Serve the dashboard API with uvicorn.

Usage:
    python scripts/serve_dashboard.py [--host 127.0.0.1] [--port 8000] [--admin] [--reload]

--admin sets VERSUS_ADMIN_MODE=true for this process, enabling the ignore controls.
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from versus.config import load_dotenv

load_dotenv()

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Serve the comparison dashboard API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    parser.add_argument("--admin", action="store_true", help="Enable admin mode (ignore controls)")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    args = parser.parse_args()

    if args.admin:
        os.environ["VERSUS_ADMIN_MODE"] = "true"

    uvicorn.run("versus.api.app:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
