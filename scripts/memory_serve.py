"""
CLI for launching the FastAPI server.

Usage:
    python scripts/memory_serve.py
    python scripts/memory_serve.py --port 8080 --host 127.0.0.1
"""

import argparse
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn

from dialog_memory.telemetry import configure_logging


def main():
    parser = argparse.ArgumentParser(
        description="Launch the Dialog Memory FastAPI server"
    )

    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Host to bind to",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Log level (DEBUG, INFO, WARNING)",
    )

    args = parser.parse_args()

    configure_logging(args.log_level)

    print(f"Starting Dialog Memory API server on {args.host}:{args.port}")
    print(f"API documentation available at: http://localhost:{args.port}/docs")

    uvicorn.run(
        "dialog_memory.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
