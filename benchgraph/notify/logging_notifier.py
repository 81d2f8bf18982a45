from __future__ import annotations

import logging

from benchgraph.schema.summary import RunSummary

from .base import Notifier

logger = logging.getLogger("benchgraph.notify")


class LoggingNotifier(Notifier):
    """Writes the summary to the run log. Used when no address is configured."""

    name = "log"

    def __init__(self, address: str = ""):
        self.address = address

    async def notify(self, summary: RunSummary) -> bool:
        level = logging.INFO if summary.success else logging.WARNING
        target = f" (for {self.address})" if self.address else ""
        logger.log(level, f"Run {summary.run_id} {summary.status}{target}\n{summary.render_text().rstrip()}")
        return True
