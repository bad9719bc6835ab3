"""
Sanprinon Lite - Chained Job Trigger

Fire-and-forget HTTP notifications for jobs that run after the daily charge
run. Calls are bounded by a timeout, failures are logged and never retried
here, and nothing the remote side does can hold up ledger posting.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

import httpx

logger = logging.getLogger(__name__)


class JobTrigger:
    """Best-effort HTTP trigger for chained jobs."""

    def __init__(
        self,
        timeout_seconds: float = 5.0,
        bearer_token: Optional[str] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.headers = {"Content-Type": "application/json"}
        if bearer_token:
            self.headers["Authorization"] = f"Bearer {bearer_token}"
        self._pending: Set[asyncio.Task] = set()

    def fire(self, url: str, payload: Optional[Dict[str, Any]] = None) -> asyncio.Task:
        """Schedule a POST to ``url`` and return immediately."""
        task = asyncio.get_running_loop().create_task(self._call(url, payload or {}))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def fire_all(self, urls: List[str], payload: Optional[Dict[str, Any]] = None) -> List[asyncio.Task]:
        return [self.fire(url, payload) for url in urls]

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding calls, for processes about to close their loop."""
        if not self._pending:
            return
        await asyncio.wait(set(self._pending), timeout=timeout or self.timeout_seconds + 1)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def _call(self, url: str, payload: Dict[str, Any]) -> Optional[int]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await asyncio.wait_for(
                    client.post(url, json=payload, headers=self.headers),
                    timeout=self.timeout_seconds,
                )
            if response.is_success:
                logger.info(f"Chained job {url} triggered: {response.status_code}")
            else:
                logger.warning(f"Chained job {url} returned {response.status_code}")
            return response.status_code
        except asyncio.TimeoutError:
            logger.warning(f"Chained job {url} timed out after {self.timeout_seconds}s")
        except httpx.HTTPError as e:
            logger.warning(f"Chained job {url} failed: {e}")
        return None
