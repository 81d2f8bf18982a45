"""HTTP notifier: POSTs the run summary as JSON."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp
from aiohttp import ClientConnectorError, ClientResponseError

from benchgraph.schema.summary import RunSummary

from .base import Notifier

logger = logging.getLogger("benchgraph.notify")


class WebhookNotifier(Notifier):
    name = "webhook"

    def __init__(self, url: str, timeout: float = 30.0, session: Optional[aiohttp.ClientSession] = None):
        self.url = url
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    def payload(self, summary: RunSummary) -> dict:
        return {
            "event": "run_finished",
            "status": summary.status,
            "summary": summary.model_dump(mode="json"),
        }

    async def notify(self, summary: RunSummary) -> bool:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            self._owns_session = True
        try:
            async with self._session.post(self.url, json=self.payload(summary)) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    logger.warning(f"Notification to {self.url} rejected: {response.status} - {error_text}")
                    return False
        except (ClientConnectorError, ClientResponseError) as e:
            logger.warning(f"Notification to {self.url} failed: {e}")
            return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Notification to {self.url} failed: {e!r}")
            return False
        logger.info(f"Sent run summary for {summary.run_id} to {self.url}")
        return True

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None
