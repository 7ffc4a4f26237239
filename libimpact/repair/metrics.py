import os
from collections import Counter
from logging import getLogger
from typing import Dict, Tuple

from .locator import ProjectIndex
from ..code_map.model import ElementKind
from ..workflow.model import Partition, PhaseMetrics, RepairOutcome

logger = getLogger(__name__)


class MetricsAccumulator:
    """Tallies the modifications of each partition over the whole run

    Only bookkeeping, it never influences the repair loop.

    """

    def __init__(self, index: ProjectIndex, project_dir: str):
        self.index = index
        self.project_dir: str = os.path.abspath(project_dir)

        self.metrics: Dict[Partition, PhaseMetrics] = {
            partition: PhaseMetrics(
                total_files=index.file_counts[partition],
                total_lines=index.line_counts[partition],
            )
            for partition in Partition
        }
        self.counters: Dict[Partition, Counter] = {partition: Counter() for partition in Partition}

    def record(self, outcome: RepairOutcome):
        if not outcome.modified:
            return

        partition = self.index.partition_of(outcome.path)
        metrics = self.metrics[partition]

        metrics.modified_files.add(self.relative_path(outcome.path))
        metrics.deleted_lines += outcome.deleted_lines

        counter = self.counters[partition]
        counter.update(outcome.events)
        metrics.deleted_elements += len(outcome.events)
        metrics.deleted_elements_by_kind = {kind: counter[kind] for kind in ElementKind if counter[kind]}

        logger.info(f'Modified {self.relative_path(outcome.path)}: {len(outcome.events)} elements, {outcome.deleted_lines} lines deleted')

    def relative_path(self, path: str) -> str:
        try:
            return os.path.relpath(path, self.project_dir).replace(os.path.sep, '/')
        except ValueError:
            # Different drive on Windows
            return path

    @property
    def main(self) -> PhaseMetrics:
        return self.metrics[Partition.MAIN]

    @property
    def test(self) -> PhaseMetrics:
        return self.metrics[Partition.TEST]

    def snapshot(self) -> Tuple[PhaseMetrics, PhaseMetrics]:
        """Independent copies of the production and test metrics"""
        return self.main.model_copy(deep=True), self.test.model_copy(deep=True)
