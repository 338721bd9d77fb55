"""Entry point for running ZoomXO via ``python -m zoomxo``."""

from __future__ import annotations

import logging
import os

import uvicorn


def main() -> None:
    """Start the FastAPI-powered ZoomXO server."""

    level = os.environ.get("ZOOMXO_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    host = os.environ.get("ZOOMXO_HOST", "0.0.0.0")
    port = int(os.environ.get("ZOOMXO_PORT", "8000"))
    uvicorn.run("zoomxo.api:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
