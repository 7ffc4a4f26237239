from typing import Optional, Dict, List, Set, Tuple

from pydantic import BaseModel, Field

from ..code_map.model import ElementKind
from ..common.util import SimpleEnum, percent, count_deleted_lines


class Partition(SimpleEnum):
    """Production or test code, decided by the source root a file is under"""
    MAIN = 'MAIN'
    TEST = 'TEST'


class Phase(SimpleEnum):
    """Repair phase, named after the build goal it compiles with"""
    MAIN = 'MAIN'
    TEST = 'TEST'

    @property
    def goal(self) -> str:
        return {
            Phase.MAIN: 'compile',
            Phase.TEST: 'test-compile',
        }[self]


class PhaseStatus(SimpleEnum):
    """Represents the possible outcomes of a repair phase"""
    PENDING = 'PENDING'
    SUCCEEDED = 'SUCCEEDED'
    STALLED = 'STALLED'
    EXHAUSTED = 'EXHAUSTED'
    BUILD_FAILED = 'BUILD_FAILED'


class DiagnosticRecord(BaseModel):
    """Compiler errors reported for a single source file in one compile pass"""

    file_name: str
    """Bare file name as it appeared in the compiler output"""

    file_path: str
    """Absolute path the file name was resolved to"""

    error_lines: Set[int] = set()
    """One based line numbers with at least one error"""

    @classmethod
    def new(cls, file_name: str, file_path: str) -> 'DiagnosticRecord':
        return cls(file_name=file_name, file_path=file_path, error_lines=set())

    def add_error_line(self, lineno: int):
        self.error_lines.add(lineno)

    @property
    def sorted_lines(self) -> List[int]:
        return sorted(self.error_lines)


class RepairOutcome(BaseModel):
    """Result of repairing a single source file"""

    path: str
    """Absolute path of the source file"""

    modified: bool = False
    """The file has been rewritten with different content"""

    original_text: str = ''
    """Content before the repair"""

    modified_text: str = ''
    """Content after the repair, same as the original if not modified"""

    events: List[ElementKind] = []
    """Elements deleted or synthesized, one entry for each"""

    @classmethod
    def unmodified(cls, path: str) -> 'RepairOutcome':
        return cls(path=path)

    @property
    def deleted_lines(self) -> int:
        if not self.modified:
            return 0
        return count_deleted_lines(self.original_text, self.modified_text)


class PhaseMetrics(BaseModel):
    """Accumulated modifications of one partition of the project over the whole run"""

    total_files: int = 0
    total_lines: int = 0
    modified_files: Set[str] = Field(default_factory=set)
    deleted_lines: int = 0
    deleted_elements: int = 0
    deleted_elements_by_kind: Dict[ElementKind, int] = Field(default_factory=dict)

    @property
    def file_modification_rate(self) -> float:
        return percent(len(self.modified_files), self.total_files)

    @property
    def line_deletion_rate(self) -> float:
        return percent(self.deleted_lines, self.total_lines)

    @property
    def remaining_lines(self) -> int:
        return max(0, self.total_lines - self.deleted_lines)

    @property
    def histogram(self) -> List[Tuple[ElementKind, int]]:
        """Element kinds by descending count, ties in kind order"""
        order = list(ElementKind)
        return sorted(self.deleted_elements_by_kind.items(), key=lambda item: (-item[1], order.index(item[0])))


class TestRunSummary(BaseModel):
    """Outcome of running the test suite after the repair"""

    __test__ = False

    total_tests: int = 0
    failures: int = 0
    errors: int = 0
    skipped_tests: int = 0

    failing_method_names: List[str] = []
    """Tests failing for ordinary reasons, qualified class name and method name"""

    library_removal_failure_names: List[str] = []
    """Tests failing on the dependency removal marker"""

    error_method_names: List[str] = []
    """Tests ending with an unexpected exception"""

    @property
    def failed_tests(self) -> int:
        return self.failures + self.errors

    @property
    def error_tests(self) -> int:
        return self.errors

    @property
    def passed_tests(self) -> int:
        return max(0, self.total_tests - self.failures - self.errors - self.skipped_tests)

    @property
    def pass_rate(self) -> float:
        return percent(self.passed_tests, self.total_tests)


class PhaseOutcome(BaseModel):
    """Final state of one repair phase"""

    phase: Phase
    status: PhaseStatus = PhaseStatus.PENDING
    iterations: int = 0
    duration: float = 0.0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == PhaseStatus.SUCCEEDED


class RunResult(BaseModel):
    """Everything a run reports, serialized into the result JSON"""

    success: bool
    main: PhaseMetrics
    test: PhaseMetrics
    main_phase: PhaseOutcome
    test_phase: PhaseOutcome
    test_summary: Optional[TestRunSummary] = None
    test_duration: float = 0.0
    total_duration: float = 0.0

    @property
    def iterations(self) -> int:
        return self.main_phase.iterations + self.test_phase.iterations

    @property
    def repair_duration(self) -> float:
        return self.main_phase.duration + self.test_phase.duration
