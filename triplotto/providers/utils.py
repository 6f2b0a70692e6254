import os
import logging
from typing import Optional

import requests
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Ensure environment variables from .env are loaded when this module is imported.
load_dotenv()


def open_session(api_key: Optional[str] = None) -> requests.Session:
    """Open a requests session to the randomness beacon and check it responds.

    Parameters
    ----------
    api_key : Optional[str]
        Bearer token attached to every request. Falls back to the
        ``RANDOMNESS_API_KEY`` environment variable.

    Returns
    -------
    requests.Session
        The initialized session.

    Raises
    ------
    RuntimeError
        If ``RANDOMNESS_BASE_FQDN`` is not set or the beacon health endpoint
        cannot be reached. Any underlying exception is re-raised as a
        ``RuntimeError`` with context.
    """
    fqdn = os.environ.get("RANDOMNESS_BASE_FQDN")
    if not fqdn:
        raise RuntimeError("Environment variable 'RANDOMNESS_BASE_FQDN' is not set")
    url = "https://" + fqdn + "/api/v1/health"

    session = requests.Session()
    session.headers.update({"Accept": "application/json"})
    token = api_key or os.environ.get("RANDOMNESS_API_KEY")
    if token:
        # Never log the token value
        session.headers.update({"Authorization": f"Bearer {token}"})
        logger.debug("Beacon API key configured")

    try:
        response = session.get(url)
        response.raise_for_status()
    except Exception as e:
        logger.critical(f"Error occurred while starting beacon session: {e}")
        raise RuntimeError(f"Failed to establish beacon session: {e}") from e

    logger.debug("Beacon session established")
    return session
