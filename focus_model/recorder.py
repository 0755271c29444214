"""
Session Recorder client
Talks to the backend's /api/session and /api/event endpoints.

log_event() is fire-and-forget: events are queued and posted by a background
worker. A failed post is retried a bounded number of times, then dropped and
logged. Nothing here ever raises into the detection loop.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .detection_core import AnomalyEvent, Severity

logger = logging.getLogger("focus.recorder")


class RecorderError(Exception):
    """Session start/end failed on the backend."""


class SessionRecorderClient:

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        queue_size: int = 100,
        max_retries: int = 1,
        retry_delay: float = 0.5,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.queue_size = queue_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

        self.session_id: Optional[str] = None
        self.sent = 0
        self.dropped = 0

    @property
    def session_active(self) -> bool:
        return self.session_id is not None

    async def __aenter__(self) -> "SessionRecorderClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    # ──────────────────────────────────────────────────────
    # Worker lifecycle
    # ──────────────────────────────────────────────────────

    async def start(self):
        if self._worker is None:
            self._queue = asyncio.Queue(maxsize=self.queue_size)
            self._worker = asyncio.create_task(self._drain(), name="event-recorder")

    async def flush(self, timeout: float = 5.0):
        """Wait until queued events have been posted (or dropped)."""
        if self._queue is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Recorder flush timed out with {self._queue.qsize()} event(s) pending")

    async def close(self):
        await self.flush()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Recorder worker ended with an error: {e}")
            self._worker = None
        await self._client.aclose()

    # ──────────────────────────────────────────────────────
    # Session control
    # ──────────────────────────────────────────────────────

    async def start_session(self, candidate_name: Optional[str] = None) -> str:
        candidate_name = candidate_name or "Unknown Candidate"
        try:
            resp = await self._client.post("/api/session/start", json={"candidateName": candidate_name})
        except httpx.HTTPError as e:
            raise RecorderError(f"Failed to start session: {e}") from e
        data = self._json(resp)
        if resp.status_code != 201 or not data.get("success"):
            raise RecorderError(f"Failed to start session: {data.get('message', resp.status_code)}")

        self.session_id = data["sessionId"]
        logger.info(f"Session {self.session_id} started for {candidate_name}")
        self.log_message(f"Interview session started for {candidate_name}", Severity.SUCCESS)
        return self.session_id

    async def end_session(self) -> Dict[str, Any]:
        if self.session_id is None:
            raise RecorderError("No active session")

        await self.flush()
        try:
            resp = await self._client.post("/api/session/end", json={"sessionId": self.session_id})
        except httpx.HTTPError as e:
            raise RecorderError(f"Failed to end session: {e}") from e
        data = self._json(resp)
        if resp.status_code != 200 or not data.get("success"):
            raise RecorderError(f"Failed to end session: {data.get('message', resp.status_code)}")

        logger.info(f"Session {self.session_id} ended")
        self.session_id = None
        return data["session"]

    # ──────────────────────────────────────────────────────
    # Events
    # ──────────────────────────────────────────────────────

    def log_event(self, event: AnomalyEvent) -> bool:
        return self.log_message(event.message, event.severity)

    def log_message(self, message: str, severity: Severity = Severity.INFO) -> bool:
        """Queue an event for the active session. Returns False if not queued."""
        if self.session_id is None or self._queue is None:
            return False
        payload = {"sessionId": self.session_id, "type": severity.value, "message": message}
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Recorder queue full, dropping event: {message}")
            return False
        return True

    async def _drain(self):
        while True:
            payload = await self._queue.get()
            try:
                await self._post_event(payload)
            except Exception:
                self.dropped += 1
                logger.exception(f"Recorder worker failed, dropping event: {payload['message']}")
            finally:
                self._queue.task_done()

    async def _post_event(self, payload: Dict[str, Any]) -> bool:
        for attempt in range(self.max_retries + 1):
            try:
                resp = await self._client.post("/api/event", json=payload)
                if resp.status_code == 201:
                    self.sent += 1
                    return True
                logger.warning(f"Event log rejected ({resp.status_code}): {resp.text}")
            except httpx.HTTPError as e:
                logger.warning(f"Event log failed: {e}")
            if attempt < self.max_retries:
                await asyncio.sleep(self.retry_delay)

        self.dropped += 1
        logger.error(f"Dropping event after {self.max_retries + 1} attempt(s): {payload['message']}")
        return False

    @staticmethod
    def _json(resp: httpx.Response) -> Dict[str, Any]:
        try:
            return resp.json()
        except ValueError:
            return {}
