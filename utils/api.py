# utils/api.py
from __future__ import annotations

import logging
import os
import random
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urljoin

import requests
from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]


def load_env_if_opted_in() -> None:
    """
    Only load .env files when explicitly opted in
    - Set PYTHON_DOTENV_LOAD=1 to enable
    - PYTHON_DOTENV_DISABLE=1 always disables
    """
    if os.getenv("PYTHON_DOTENV_DISABLE") == "1":
        return
    if os.getenv("PYTHON_DOTENV_LOAD") != "1":
        return

    # Repo defaults, then local overrides
    load_dotenv(str(REPO_ROOT / ".env"))
    load_dotenv(str(REPO_ROOT / ".env.local"), override=True)


# --- Tunables ---------------------------------------------------------------
DEFAULT_TIMEOUT: tuple[float, float] = (5, 30)  # (connect, read) seconds
DEFAULT_PER_PAGE = 100
USER_AGENT = "CartridgeImport/1.0"
API_PREFIX = "/api/v1"
MAX_ATTEMPTS = 4
RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})

log = logging.getLogger(__name__)


def timeout_from_env(raw: Optional[str] = None) -> tuple[float, float]:
    """Parse CARTRIDGE_HTTP_TIMEOUT="connect,read"; falls back to DEFAULT_TIMEOUT."""
    raw = raw if raw is not None else os.getenv("CARTRIDGE_HTTP_TIMEOUT")
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        parts = [float(p.strip()) for p in raw.split(",")]
    except ValueError:
        log.warning("Ignoring malformed CARTRIDGE_HTTP_TIMEOUT=%r", raw)
        return DEFAULT_TIMEOUT
    if len(parts) != 2:
        return DEFAULT_TIMEOUT
    return (parts[0], parts[1])


class StoreAPI:
    """JSON-over-HTTP client for a remote course entity store."""

    def __init__(self, base_url: str | None, token: str | None, *, timeout: tuple[float, float] | None = None) -> None:
        if not base_url or not token:
            raise ValueError("StoreAPI base_url and token are required (check CARTRIDGE_STORE_URL / CARTRIDGE_STORE_TOKEN)")

        root = base_url.rstrip("/")
        if not root.endswith(API_PREFIX):
            root += API_PREFIX
        self.api_root = root + "/"
        self.timeout = timeout or timeout_from_env()

        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        })

    @classmethod
    def from_env(cls) -> "StoreAPI":
        load_env_if_opted_in()
        return cls(os.getenv("CARTRIDGE_STORE_URL"), os.getenv("CARTRIDGE_STORE_TOKEN"))

    def _full_url(self, endpoint: str) -> str:
        """Absolute URLs pass through; relative ones may carry a leading /api/v1."""
        ep = (endpoint or "").strip()
        if ep.startswith(("http://", "https://")):
            return ep
        if ep.startswith(API_PREFIX):
            ep = ep[len(API_PREFIX):]
        return urljoin(self.api_root, ep.lstrip("/"))

    @staticmethod
    def _backoff(attempt: int, resp: Optional[requests.Response] = None) -> float:
        wait = 2.0 ** (attempt - 1)
        if resp is not None and resp.status_code == 429:
            try:
                wait = float(resp.headers.get("Retry-After", wait))
            except ValueError:
                pass  # HTTP-date form; keep the exponential wait
        return wait + random.uniform(0, 0.25 * wait)

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        One store call with retries.
        - 429 honours Retry-After, 5xx backs off exponentially.
        - Connection errors and timeouts retry the same way, then re-raise.
        - Any other 4xx raises requests.HTTPError immediately.
        """
        for attempt in range(1, MAX_ATTEMPTS + 1):
            final = attempt == MAX_ATTEMPTS
            try:
                resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
            except (requests.ConnectionError, requests.Timeout):
                if final:
                    raise
                wait = self._backoff(attempt)
                log.warning(
                    "Store unreachable on %s %s. Retrying after %.2fs (attempt %s/%s)",
                    method, url, wait, attempt, MAX_ATTEMPTS,
                )
                time.sleep(wait)
                continue

            if resp.status_code in RETRY_STATUSES and not final:
                wait = self._backoff(attempt, resp)
                reason = "Rate limited" if resp.status_code == 429 else f"Server error {resp.status_code}"
                log.warning(
                    "%s on %s %s. Retrying after %.2fs (attempt %s/%s)",
                    reason, method, url, wait, attempt, MAX_ATTEMPTS,
                    extra={"url": url, "status": resp.status_code},
                )
                time.sleep(wait)
                continue

            resp.raise_for_status()
            return resp
        raise requests.HTTPError(f"{method} {url} gave up after {MAX_ATTEMPTS} attempts")

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """
        GET that follows Link rel="next" for list responses; objects come back as-is.
        """
        url: Optional[str] = self._full_url(endpoint)
        query: Optional[Dict[str, Any]] = {"per_page": DEFAULT_PER_PAGE, **(params or {})}

        rows: List[Dict[str, Any]] = []
        while url:
            resp = self._request("GET", url, params=query)
            query = None  # next links already carry the query string
            data = self.json_body(resp) if resp.content else []
            if not isinstance(data, list):
                return data
            rows.extend(data)
            url = resp.links.get("next", {}).get("url")
        return rows

    def post(self, endpoint: str, *, json: Optional[Dict[str, Any]] = None) -> requests.Response:
        return self._request("POST", self._full_url(endpoint), json=json)

    def put(self, endpoint: str, *, json: Optional[Dict[str, Any]] = None) -> requests.Response:
        return self._request("PUT", self._full_url(endpoint), json=json)

    @staticmethod
    def json_body(resp: requests.Response) -> Any:
        """Parsed JSON body, or {} for 204, empty bodies and malformed JSON."""
        if resp.status_code == 204 or not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            return {}
