# Board — HTTP storage client
#
# Talks to the storage service's /api/board endpoint. Every call is
# best-effort: failures are logged and reported as "nothing saved" (load)
# or dropped (save/clear). Nothing here raises.

import logging
from typing import Any, Dict, Optional

import requests

from .schema import BoardState

logger = logging.getLogger(__name__)

BOARD_ENDPOINT = "/api/board"
REQUEST_TIMEOUT = 4.0


class HttpBoardStorage:
    """Storage service client: load/save/clear the board blob over HTTP."""

    def __init__(self, base_url: str = "", timeout: float = REQUEST_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.url = base_url.rstrip("/") + BOARD_ENDPOINT
        self.timeout = timeout
        self.session = session or requests.Session()

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored blob, or None if empty or unreachable."""
        try:
            r = self.session.get(self.url, timeout=self.timeout)
            if r.status_code == 204:
                return None
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to load board state from {self.url}: {e}")
            return None
        if not isinstance(data, dict):
            logger.error(f"Ignoring non-object board state from {self.url}")
            return None
        return data

    def save(self, state: BoardState) -> None:
        try:
            r = self.session.put(self.url, json=state.to_dict(), timeout=self.timeout)
            r.raise_for_status()
        except (requests.RequestException, TypeError, ValueError) as e:
            logger.error(f"Failed to save board state to {self.url}: {e}")

    def clear(self) -> None:
        try:
            r = self.session.delete(self.url, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to clear board state at {self.url}: {e}")

    def has_saved_state(self) -> bool:
        try:
            r = self.session.get(self.url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Failed to check board state at {self.url}: {e}")
            return False
        return r.status_code == 200
