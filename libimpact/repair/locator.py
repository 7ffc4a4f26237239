import os
from collections import defaultdict
from logging import getLogger
from typing import Dict, List, Optional, Set

from ..common.config import Config
from ..common.util import iter_tree, read_text_file, count_lines
from ..workflow.model import Partition

logger = getLogger(__name__)


class ProjectIndex:
    """Source files of the project, indexed once at the start of the run

    Files are classified by the source root they are under. A file under
    both roots (nested roots) belongs to the more specific, longer root.

    """

    def __init__(self, main_dir: str, test_dir: str, extension: str = 'java'):
        self.main_dir: str = os.path.normpath(os.path.abspath(main_dir))
        self.test_dir: str = os.path.normpath(os.path.abspath(test_dir))
        self.extension: str = extension

        self.partitions: Dict[str, Partition] = {}
        self.paths_by_name: Dict[str, List[str]] = defaultdict(list)
        self.file_counts: Dict[Partition, int] = {Partition.MAIN: 0, Partition.TEST: 0}
        self.line_counts: Dict[Partition, int] = {Partition.MAIN: 0, Partition.TEST: 0}

        self.scan()

    @classmethod
    def from_config(cls, config: Config) -> 'ProjectIndex':
        return cls(config.main_dir, config.test_dir, config.SOURCE_EXTENSION)

    def scan(self):
        for root in self.roots:
            if not os.path.isdir(root):
                logger.warning(f'Source directory not found: {root}')
                continue

            for path in iter_tree(root, self.extension):
                if path in self.partitions:
                    continue

                partition = self.classify(path)
                self.partitions[path] = partition
                self.paths_by_name[os.path.basename(path)].append(path)
                self.file_counts[partition] += 1

                try:
                    self.line_counts[partition] += count_lines(read_text_file(path))
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning(f'Failed to count lines of {path}: [{e.__class__.__name__}] {e}')

    @property
    def roots(self) -> List[str]:
        """Production root first, it takes precedence when resolving file names"""
        return [self.main_dir, self.test_dir]

    def classify(self, path: str) -> Partition:
        path = os.path.normpath(os.path.abspath(path))
        in_main = is_under(path, self.main_dir)
        in_test = is_under(path, self.test_dir)
        if in_main and in_test:
            return Partition.TEST if len(self.test_dir) > len(self.main_dir) else Partition.MAIN
        return Partition.TEST if in_test else Partition.MAIN

    def partition_of(self, path: str) -> Partition:
        path = os.path.normpath(os.path.abspath(path))
        partition = self.partitions.get(path)
        if partition is None:
            partition = self.classify(path)
        return partition

    def is_test(self, path: str) -> bool:
        return self.partition_of(path) == Partition.TEST

    def paths_named(self, file_name: str) -> List[str]:
        return self.paths_by_name.get(file_name, [])


class LocationResolver:
    """Maps bare file names from compiler output to absolute paths"""

    def __init__(self, index: ProjectIndex):
        self.index = index
        self.reported_ambiguities: Set[str] = set()

    def resolve(self, file_name: str) -> Optional[str]:
        paths = self.index.paths_named(file_name)
        if not paths:
            return None

        if len(paths) > 1 and file_name not in self.reported_ambiguities:
            self.reported_ambiguities.add(file_name)
            logger.warning(f'Multiple files named {file_name}, using the first one:\n' + '\n'.join(f'  - {path}' for path in paths))

        return paths[0]


def is_under(path: str, directory: str) -> bool:
    try:
        return os.path.commonpath([path, directory]) == directory
    except ValueError:
        return False
