"""Notifier interface for end-of-run summaries."""

from __future__ import annotations

from abc import ABC, abstractmethod

from benchgraph.schema.summary import RunSummary


class Notifier(ABC):
    name = "notifier"

    @abstractmethod
    async def notify(self, summary: RunSummary) -> bool:
        """Deliver the summary; returns False when delivery failed."""

    async def close(self) -> None:
        return None
