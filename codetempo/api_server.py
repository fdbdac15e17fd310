"""API server entry point."""

from __future__ import annotations

import logging
import os
import sys

import uvicorn

from codetempo.api.routes import create_app


def main(host: str | None = None, port: int | None = None) -> None:
    """Run the API server."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    app = create_app()
    uvicorn.run(
        app,
        host=host or os.environ.get("HOST", "127.0.0.1"),
        port=port or int(os.environ.get("PORT", "8000")),
        log_level="info",
    )


if __name__ == "__main__":
    main()
