"""Parsing of Maven compiler and Surefire test output

Compiler errors look like this (the path may be absolute or relative):

    [ERROR] /work/shop/src/main/java/com/shop/Cart.java:[12,8] cannot find symbol

The only parts used are the bare file name and the first number in the
brackets, the line. Test results are taken from the Surefire summary lines
and from the headers of the individual failing tests.

"""
import re
from logging import getLogger
from typing import Dict, Iterable, List, Optional, Tuple

from .locator import LocationResolver
from ..workflow.model import DiagnosticRecord, TestRunSummary

logger = getLogger(__name__)

RX_TEST_SUMMARY = re.compile(r'Tests run: (?P<run>\d+), Failures: (?P<failures>\d+), Errors: (?P<errors>\d+), Skipped: (?P<skipped>\d+)')

RX_TEST_FAILURE = re.compile(
    r'(?P<test>[\w$.]+(?:\([\w$.]*\))?)\s+(?:--\s+)?Time elapsed:.*?<<<\s*(?P<outcome>FAILURE|ERROR)!'
)

RX_OLD_STYLE_TEST_NAME = re.compile(r'^(?P<method>[\w$]+)\((?P<cls>[\w$.]+)\)$')


def compile_error_pattern(extension: str = 'java') -> re.Pattern:
    return re.compile(rf'(?P<file_name>[^\\/:*?"<>|\s\[\]]+\.{re.escape(extension)})\b.*?\[(?P<line>\d+),')


class DiagnosticExtractor:
    """Collects the error lines of each source file from compiler output"""

    def __init__(self, resolver: LocationResolver, *, extension: str = 'java', non_error_prefixes: Iterable[str] = ('[WARNING]', '[INFO]')):
        self.resolver = resolver
        self.pattern = compile_error_pattern(extension)
        self.non_error_prefixes: Tuple[str, ...] = tuple(non_error_prefixes)

    def match(self, line: str) -> Optional[Tuple[str, int]]:
        if line.lstrip().startswith(self.non_error_prefixes):
            return None

        m = self.pattern.search(line)
        if m is None:
            return None

        return m.group('file_name'), int(m.group('line'))

    def extract(self, lines: Iterable[str]) -> Dict[str, DiagnosticRecord]:
        records: Dict[str, DiagnosticRecord] = {}
        unresolved: List[str] = []

        for line in lines:
            found = self.match(line)
            if found is None:
                continue

            file_name, lineno = found

            record = records.get(file_name)
            if record is None:
                if file_name in unresolved:
                    continue

                path = self.resolver.resolve(file_name)
                if path is None:
                    logger.warning(f'Dropping diagnostic, source file not found: {file_name}')
                    unresolved.append(file_name)
                    continue

                record = records[file_name] = DiagnosticRecord.new(file_name, path)

            record.add_error_line(lineno)

        return records


def parse_test_output(lines: Iterable[str], marker: str) -> TestRunSummary:
    """Builds the test summary from Surefire output

    Aggregate summary lines (the ones under "Results:", without timing) are
    summed if present, otherwise the per class lines are summed.

    """
    aggregate: List[Tuple[int, int, int, int]] = []
    per_class: List[Tuple[int, int, int, int]] = []

    failing: List[str] = []
    lib_removed: List[str] = []
    errored: List[str] = []

    pending: Optional[Tuple[str, str]] = None

    for line in lines:
        if pending is not None and line.strip():
            name, outcome = pending
            pending = None
            if marker and marker in line:
                append_unique(lib_removed, name)
            elif outcome == 'FAILURE':
                append_unique(failing, name)
            else:
                append_unique(errored, name)

        m = RX_TEST_SUMMARY.search(line)
        if m is not None:
            counts = (int(m.group('run')), int(m.group('failures')), int(m.group('errors')), int(m.group('skipped')))
            if 'Time elapsed' in line:
                per_class.append(counts)
            else:
                aggregate.append(counts)
            continue

        m = RX_TEST_FAILURE.search(line)
        if m is not None:
            pending = (qualified_test_name(m.group('test')), m.group('outcome'))

    if pending is not None:
        name, outcome = pending
        append_unique(failing if outcome == 'FAILURE' else errored, name)

    summary = TestRunSummary()
    for run, failures, errors, skipped in aggregate or per_class:
        summary.total_tests += run
        summary.failures += failures
        summary.errors += errors
        summary.skipped_tests += skipped

    summary.failing_method_names = failing
    summary.library_removal_failure_names = lib_removed
    summary.error_method_names = errored
    return summary


def qualified_test_name(text: str) -> str:
    """Normalizes both `method(com.x.FooTest)` and `com.x.FooTest.method()` to `com.x.FooTest.method`"""
    m = RX_OLD_STYLE_TEST_NAME.match(text)
    if m is not None and m.group('cls'):
        return f"{m.group('cls')}.{m.group('method')}"
    return text.split('(', 1)[0]


def append_unique(names: List[str], name: str):
    if name not in names:
        names.append(name)
