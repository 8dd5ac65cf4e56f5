# neura_dashboard/check_backend.py
"""Startup and health probes for the insights backend and Supabase configuration."""

import os
import sys
from typing import Any, Dict

import requests

from neura_dashboard.api_client import backend_base_url
from neura_dashboard.config import settings
from utils.logging_utils import get_tagged_logger, mask_url, setup_logging

setup_logging(level=os.getenv("LOG_LEVEL", "INFO"))
logger = get_tagged_logger(__name__, tag="check_backend")


def _health_url() -> str:
    return f"{backend_base_url()}/health"


def get_backend_status() -> Dict[str, Any]:
    """
    Non-fatal probe of the insights backend.

    Returns a dict like:
    {
      "ok": bool,
      "reachable": bool,
      "base_url": "...",
      "status_code": 200,
      "auth_configured": bool,
      "error": "...",   # present if something went wrong
    }

    Any HTTP answer below 500 counts as reachable; the backend may not expose
    ``/health`` at all. This NEVER sys.exit(). Suitable for health checks.
    """
    status: Dict[str, Any] = {
        "ok": False,
        "reachable": False,
        "base_url": mask_url(backend_base_url()),
        "status_code": None,
        "auth_configured": bool(settings.supabase_url and settings.supabase_anon_key),
        "error": None,
    }

    try:
        resp = requests.get(_health_url(), timeout=3)
    except requests.exceptions.RequestException as e:
        status["error"] = str(e)
        return status

    status["status_code"] = resp.status_code
    logger.debug(f"Backend health response: {resp.status_code}")
    if resp.status_code >= 500:
        status["error"] = f"Backend answered {resp.status_code}"
        return status

    status["reachable"] = True
    status["ok"] = status["reachable"] and status["auth_configured"]
    return status


def check_backend() -> None:
    """
    "Hard" check for startup.

    Fails with sys.exit(1) if the backend isn't reachable or Supabase
    credentials are missing.
    """
    status = get_backend_status()

    if not status["reachable"]:
        logger.error(f"\nERROR: The insights backend does not appear to be running or is unreachable.\n"
                     f"   Tried: {mask_url(_health_url())}")
        if status["error"]:
            logger.error(f"   Details: {status['error']}")
        logger.error("\n   Set NEURA_API_URL (or NEXT_PUBLIC_API_URL) to the backend's base URL.")
        sys.exit(1)

    if not status["auth_configured"]:
        logger.error("\nERROR: Supabase is not configured.\n"
                     "   Set NEURA_SUPABASE_URL and NEURA_SUPABASE_ANON_KEY.")
        sys.exit(1)

    logger.info(f"Backend reachable at {status['base_url']}")
