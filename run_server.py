import os

import uvicorn

from neura_dashboard.check_backend import check_backend
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="server")


def maybe_check_backend() -> None:
    """
    Optionally run the backend preflight. Controlled by:
    - NEURA_SKIP_BACKEND_CHECK=true to skip entirely (useful in dev/tests)
    """
    if os.getenv("NEURA_SKIP_BACKEND_CHECK", "false").lower() in ("1", "true", "yes"):
        logger.info("Skipping backend preflight (NEURA_SKIP_BACKEND_CHECK=true)")
        return

    try:
        check_backend()
    except SystemExit:
        # Allow caller to see the exit, but log a clear message first.
        logger.error("Backend preflight failed; set NEURA_SKIP_BACKEND_CHECK=true to bypass during dev/tests.")
        raise


if __name__ == "__main__":
    maybe_check_backend()

    uvicorn.run(
        "neura_dashboard.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
