import os
import logging
from urllib.parse import urljoin
from dotenv import load_dotenv
from .utils import open_session
from typing import Any, Optional, Mapping

logger = logging.getLogger(__name__)


class BeaconClient:
    """HTTP client for an external randomness beacon.

    Implements the randomness-provider contract: :meth:`request_seed` opens a
    request and returns its id, :meth:`fetch_seed` polls for the result.
    """

    def __init__(
        self,
        base_fqdn: Optional[str] = None,
        timeout: int = 45,
        callback_url: Optional[str] = None,
    ):
        load_dotenv()
        fqdn = base_fqdn or os.getenv("RANDOMNESS_BASE_FQDN")
        if not fqdn:
            raise ValueError("Environment variable 'RANDOMNESS_BASE_FQDN' is not set")

        self.base_url = f"https://{fqdn}".rstrip("/")
        self.session = open_session()
        self.callback_url = callback_url or os.getenv("RANDOMNESS_CALLBACK_URL")
        self.timeout = timeout

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        r = self.session.request(
            method=method.upper(),
            url=url,
            params=params,
            json=json,
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json() if r.content else None

    # -------- API callers --------
    def request_seed(self, callback_budget: int) -> str:
        """Open a randomness request and return the beacon's request id."""
        body: dict = {"callback_budget": callback_budget}
        if self.callback_url:
            body["callback_url"] = self.callback_url
        response = self._request("POST", "/api/v1/requests", json=body)
        if not isinstance(response, Mapping) or not response.get("request_id"):
            raise RuntimeError(f"Unexpected beacon response: {response!r}")
        request_id = str(response["request_id"])
        logger.info(f"Beacon accepted randomness request {request_id}")
        return request_id

    def fetch_seed(self, request_id: str) -> Optional[str]:
        """Return the hex seed for ``request_id`` once fulfilled, else ``None``."""
        response = self._request("GET", f"/api/v1/requests/{request_id}")
        if not isinstance(response, Mapping):
            raise RuntimeError(f"Unexpected beacon response: {response!r}")
        if response.get("status") != "fulfilled":
            return None
        seed = response.get("seed")
        if not seed:
            raise RuntimeError(
                f"Beacon reported request {request_id} fulfilled without a seed"
            )
        return str(seed)
