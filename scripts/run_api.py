#!/usr/bin/env python
"""
Serve the optimizer API.

Usage:
    python scripts/run_api.py
    python scripts/run_api.py --port 8080 --log-level debug
"""
import argparse
from pathlib import Path

import uvicorn

PROJECT_ROOT = Path(__file__).parent.parent
SRC_PATH = PROJECT_ROOT / 'src'


def main():
    parser = argparse.ArgumentParser(description="Run the price matrix optimizer API")
    parser.add_argument('--host', default='127.0.0.1')
    parser.add_argument('--port', type=int, default=8000)
    parser.add_argument('--no-reload', dest='reload', action='store_false',
                        help="disable auto-reload on source changes")
    parser.add_argument('--log-level', default='info',
                        choices=['critical', 'error', 'warning', 'info', 'debug'])
    args = parser.parse_args()

    print(f"Price Matrix Optimizer API on http://{args.host}:{args.port}")
    print(f"  Docs: http://{args.host}:{args.port}/docs")
    uvicorn.run(
        "matrix_optimizer.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        reload_dirs=[str(SRC_PATH)] if args.reload else None,
        app_dir=str(SRC_PATH),
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
