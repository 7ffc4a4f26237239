"""Repair of a single source file based on its error lines

Production files:
1. Remove the most specific elements reported at each error line.
2. If nothing can be removed at a line, make the smallest enclosing
   method return a default value (non-void methods only).
3. Sweep all non-void methods and append a default return where the
   body is empty, has no return or has statements after a return.
4. Remove the imports on the error lines.

Test files:
- Replace the body of each method containing an error line with a single
  statement failing the test with the dependency removal marker.
- Error lines on the annotations or the signature of a method, or in an
  already stubbed method, are handled by removing elements at that line.
- Error lines outside of methods are handled like in production files.

Only the edits which will actually be applied are counted. An element
inside a range which is already being removed produces no event.

"""
from logging import getLogger
from typing import List, Optional, Set, Tuple

from tree_sitter import Node

from .metrics import MetricsAccumulator
from .locator import ProjectIndex
from ..code_map.model import ElementKind, kind_of, TERMINAL_STATEMENT_TYPES, COMMENT_NODE_TYPES
from ..code_map.tree_sitter_util import is_ancestor, same_node
from ..common.config import Config
from ..common.util import read_text_file, write_text_file
from ..editing.model import JavaSource, Edit
from ..workflow.model import DiagnosticRecord, RepairOutcome, Partition

logger = getLogger(__name__)

Change = Tuple[Edit, ElementKind]

BOXED_TYPES = {
    'Boolean': 'boolean',
    'Character': 'char',
    'Byte': 'byte',
    'Short': 'short',
    'Integer': 'int',
    'Long': 'long',
    'Float': 'float',
    'Double': 'double',
}

NUMERIC_TYPES = ('byte', 'short', 'int', 'long', 'float', 'double')


def default_literal(type_name: str) -> str:
    """Default value for a return type

    Floating point types get the integer literal 0 as well.

    """
    name = type_name.strip().rsplit('.', 1)[-1]
    name = BOXED_TYPES.get(name, name)
    if name == 'boolean':
        return 'false'
    if name == 'char':
        return "'\\0'"
    if name in NUMERIC_TYPES:
        return '0'
    return 'null'


class NodeRepairPolicy:

    def __init__(self, config: Config, index: ProjectIndex, metrics: Optional[MetricsAccumulator] = None):
        self.config = config
        self.index = index
        self.metrics = metrics

    def process(self, record: DiagnosticRecord) -> bool:
        """Repairs the file of the record in place, returns True if it has been modified

        Never raises, any failure is logged and the file is treated as not modified.

        """
        try:
            outcome = self.repair_file(record)
        except Exception as e:
            logger.exception(f'Failed to repair {record.file_name}: [{e.__class__.__name__}] {e}')
            return False

        if outcome.modified and self.metrics is not None:
            self.metrics.record(outcome)

        return outcome.modified

    def repair_file(self, record: DiagnosticRecord) -> RepairOutcome:
        path = record.file_path
        if not record.error_lines:
            return RepairOutcome.unmodified(path)

        original_text = read_text_file(path)
        source = JavaSource.from_text(path, original_text, indent=self.config.INDENT)

        if self.index.partition_of(path) == Partition.TEST:
            logger.info(f'Repairing test file {record.file_name}, lines: {record.sorted_lines}')
            events = self.repair_test_source(source, record.error_lines)
        else:
            logger.info(f'Repairing file {record.file_name}, lines: {record.sorted_lines}')
            events = self.repair_main_source(source, record.error_lines)

        modified_text = source.text
        if modified_text == original_text:
            return RepairOutcome.unmodified(path)

        write_text_file(path, modified_text)

        return RepairOutcome(
            path=path,
            modified=True,
            original_text=original_text,
            modified_text=modified_text,
            events=events,
        )

    # Production code

    def repair_main_source(self, source: JavaSource, error_lines: Set[int]) -> List[ElementKind]:
        changes: List[Change] = []
        returned: Set[int] = set()

        for lineno in sorted(error_lines):
            elements = source.elements_at(lineno)
            for node in elements:
                self.delete_element(source, node, lineno, changes)

            if not elements:
                self.return_from_enclosing_method(source, lineno, returned, changes)

        self.remove_imports(source, error_lines, changes)
        events = applied_events(source, changes)
        source.commit()

        events.extend(self.complete_methods(source))
        source.commit()

        return events

    def delete_element(self, source: JavaSource, node: Node, lineno: int, changes: List[Change]) -> None:
        kind = kind_of(node)
        if kind is None:
            raise ValueError(f'Not a removable element at line {lineno} of {source.path}: {node.type}')

        edit = source.delete(node)
        if edit is None:
            logger.debug(f'Already deleted {kind} at line {lineno} of {source.path}: {first_line(node)}')
            return

        logger.debug(f'Deleting {kind} at line {lineno} of {source.path}: {first_line(node)}')
        changes.append((edit, kind))

    def return_from_enclosing_method(self, source: JavaSource, lineno: int, returned: Set[int], changes: List[Change]) -> None:
        method = source.enclosing_method(lineno)
        if method is None:
            logger.debug(f'No element nor method found at line {lineno} of {source.path}')
            return

        if method.start_byte in returned:
            return

        return_type = source.method_return_type(method)
        if return_type is None:
            return

        body = source.method_body(method)
        if body is None:
            return

        statements = source.body_statements(body)
        if statements and statements[-1].type in TERMINAL_STATEMENT_TYPES:
            return

        edit = source.append_return(method, default_literal(return_type))
        if edit is None:
            return

        returned.add(method.start_byte)
        logger.debug(f'Added default return to method {source.method_name(method)} containing line {lineno} of {source.path}')
        changes.append((edit, ElementKind.RETURN_ADDED))

    def complete_methods(self, source: JavaSource) -> List[ElementKind]:
        """Completeness sweep, appends a default return where a non-void method needs one

        Running it again on its own output does not change anything.

        """
        events: List[ElementKind] = []

        for method in source.methods():
            return_type = source.method_return_type(method)
            if return_type is None:
                continue

            body = source.method_body(method)
            if body is None:
                continue

            statements = source.body_statements(body)
            if statements and statements[-1].type in TERMINAL_STATEMENT_TYPES:
                continue

            if statements and source.has_return(body) and not has_statements_after_return(statements):
                continue

            if source.append_return(method, default_literal(return_type)) is not None:
                logger.debug(f'Completed method {source.method_name(method)} of {source.path} with a default return')
                events.append(ElementKind.RETURN_ADDED)

        return events

    def remove_imports(self, source: JavaSource, error_lines: Set[int], changes: List[Change]) -> None:
        for node in source.imports():
            if node.start_point[0] + 1 not in error_lines:
                continue

            edit = source.remove_import(node)
            if edit is not None:
                logger.debug(f'Deleting import of {source.path}: {first_line(node)}')
                changes.append((edit, ElementKind.IMPORT))

    # Test code

    def repair_test_source(self, source: JavaSource, error_lines: Set[int]) -> List[ElementKind]:
        changes: List[Change] = []
        stubbed: Set[int] = set()

        for lineno in sorted(error_lines):
            methods = source.methods_covering(lineno)
            if not methods:
                for node in source.elements_at(lineno):
                    self.delete_element(source, node, lineno, changes)
                continue

            for method in methods:
                body = source.method_body(method)
                if body is None or lineno < body.start_point[0] + 1 or self.is_stubbed(body):
                    # Annotations and signatures are not fixed by replacing the body
                    for node in signature_elements(source, method, lineno):
                        self.delete_element(source, node, lineno, changes)
                    continue

                if method.start_byte in stubbed:
                    continue
                stubbed.add(method.start_byte)

                edit = self.stub_test_method(source, method)
                if edit is not None:
                    changes.append((edit, ElementKind.TEST_STUB))

        self.remove_imports(source, error_lines, changes)
        events = applied_events(source, changes)
        source.commit()

        return events

    def is_stubbed(self, body: Node) -> bool:
        statements = [child for child in body.named_children if child.type not in COMMENT_NODE_TYPES]
        return len(statements) == 1 and self.config.LIBRARY_REMOVAL_MARKER.encode('utf-8') in statements[0].text

    def stub_test_method(self, source: JavaSource, method: Node) -> Optional[Edit]:
        """Replaces the body of the test method with a failing statement

        Returns the edit inserting the statement, None if the method has
        no body or its body is removed by a pending edit.

        """
        body = source.method_body(method)
        if body is None or self.is_stubbed(body):
            return None

        if source.clear_body(method) is None:
            return None

        logger.debug(f'Stubbing test method {source.method_name(method)} of {source.path}')
        return source.insert_statement(method, self.config.test_failure_statement)


def applied_events(source: JavaSource, changes: List[Change]) -> List[ElementKind]:
    """Kinds of the changes whose edit has not been superseded by a later one"""
    return [kind for edit, kind in changes if source.is_pending(edit)]


def signature_elements(source: JavaSource, method: Node, lineno: int) -> List[Node]:
    """Removable elements at a line of a method outside of its body

    Falls back to the method itself if it is declared at that line.

    """
    body = source.method_body(method)
    elements = [node for node in source.elements_at(lineno) if body is None or not (is_ancestor(body, node) or same_node(body, node))]
    if not elements and source.anchor_line(method) == lineno:
        elements = [method]
    return elements


def has_statements_after_return(statements: List[Node]) -> bool:
    found_return = False
    for statement in statements:
        if statement.type == 'return_statement':
            found_return = True
        elif found_return:
            return True
    return False


def first_line(node: Node) -> str:
    return node.text.decode('utf-8', errors='replace').strip().split('\n', 1)[0]
