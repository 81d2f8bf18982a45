"""Published output locations keyed by composite identity."""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import Sequence

from benchgraph.common import StageKind
from benchgraph.core.naming import artifact_filename, stage_directory
from benchgraph.core.types import Artifact

logger = logging.getLogger("benchgraph.storage")


class OutputLayout:
    """Maps (stage, key) to a file under the output directory.

    ``datasets/{task}.{dataset}.dataset.h5ad``,
    ``methods/{task}.{dataset}.{method}.method.h5ad`` and
    ``metrics/{task}.{dataset}.{method}.{metric}.metric.txt``.
    """

    SUMMARY_FILE = "summary.json"
    RESULTS_FILE = "results.jsonl"
    REPORT_FILE = "summary.txt"

    def __init__(self, root: Path):
        self.root = Path(root)

    def path_for(self, stage: StageKind, key: Sequence[str]) -> Path:
        return self.root / stage_directory(stage) / artifact_filename(stage, key)

    @property
    def summary_path(self) -> Path:
        return self.root / self.SUMMARY_FILE

    @property
    def results_path(self) -> Path:
        return self.root / self.RESULTS_FILE

    @property
    def report_path(self) -> Path:
        return self.root / self.REPORT_FILE

    def publish(self, stage: StageKind, key: Sequence[str], source: Path) -> Artifact:
        """Move ``source`` to its published location and return the artifact.

        The file is first copied next to the destination and then renamed, so a
        reader never sees a partially written artifact.
        """
        destination = self.path_for(stage, key)
        destination.parent.mkdir(parents=True, exist_ok=True)
        staging = destination.with_name(f".{destination.name}.{uuid.uuid4().hex[:8]}.partial")
        try:
            shutil.copyfile(source, staging)
            os.replace(staging, destination)
        finally:
            if staging.exists():
                staging.unlink()
        logger.debug(f"Published {stage.value} artifact {destination}")
        return Artifact(key=tuple(key), path=destination)
