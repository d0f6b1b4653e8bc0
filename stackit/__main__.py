"""
stackit.__main__ — Entry point for ``python -m stackit``
==========================================================

Wiring:
1. Load .env (secrets).
2. Configure logging.
3. Serve :mod:`stackit.api.main` with Uvicorn; the app's lifespan creates
   tables, seeds the master admin and configures the rate limiter.
"""

from __future__ import annotations

import logging
import os

import uvicorn
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("stackit")


def main() -> None:
    """Bootstrap and run the StackIt API server."""
    load_dotenv()

    host = os.getenv("STACKIT_HOST", "127.0.0.1")
    port = int(os.getenv("STACKIT_PORT", "8000"))
    logger.info("Starting StackIt API on %s:%d", host, port)
    uvicorn.run("stackit.api.main:app", host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
