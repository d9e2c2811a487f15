"""Entry point for ``python -m routecache``."""

from __future__ import annotations

import argparse

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(description="Route Cache API server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    args = parser.parse_args()
    # Single worker: the caches live in process memory.
    uvicorn.run("routecache.api.main:app", host=args.host, port=args.port, workers=1)


if __name__ == "__main__":
    main()
