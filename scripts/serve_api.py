from __future__ import annotations

import argparse

import uvicorn

from querybridge.apps.api.main import create_app


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the QueryBridge API")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()
    # The lifespan opens the metadata-store engine and disposes it on shutdown.
    uvicorn.run(create_app(), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
