""" Line targeted editing of Java sources

Compiler diagnostics only give a file name and a line number, therefore
the editing model has to answer questions like "which syntax elements
start on line 12" or "which method contains line 40", then remove or
patch those elements without understanding what they mean.

Sources are parsed with tree-sitter. The syntax tree is immutable, so
mutations are collected as byte range edits against the source the tree
was parsed from. Edits are applied by commit(), which also reparses the
new source. Node references obtained before a commit must not be used
after it.

Rules for applying edits:
- Edits are sorted by position and applied in a single pass.
- An edit inside a range which is already removed or replaced is dropped,
  except for insertions at either boundary of that range.
- Partially overlapping edits are dropped (the first one wins).
- Multiple insertions at the same position keep their registration order.

The same rules are checked when an edit is registered: an edit which would
be dropped is not registered at all, and a replacement removes the pending
edits it covers. Mutations return the registered edit or None, so callers
can tell whether their change will actually happen.

Removing a node which occupies whole lines also removes those lines, so
the printed source does not keep blank lines behind. A statement which is
the only body of an if/for/while/do/labeled statement is replaced by an
empty statement instead, since removing it would change the syntax of the
parent statement.

"""
from logging import getLogger
from typing import Optional, List, Iterator, Tuple, Set

from pydantic import BaseModel
from tree_sitter import Node, Tree

from ..code_map.model import (
    ElementKind, kind_of, DECLARATION_KINDS, CLAUSE_KINDS,
    CONTAINER_NODE_TYPES, SINGLE_STATEMENT_PARENT_TYPES, COMMENT_NODE_TYPES,
)
from ..code_map.parsers import JavaParser
from ..code_map.tree_sitter_util import walk_nodes, find_first_node, is_ancestor, node_span
from ..common.util import decode_normalize

logger = getLogger(__name__)

SPACES = b' \t'


class Edit(BaseModel):
    """Replacement of a byte range of the source, insertion if the range is empty"""

    start: int
    """Byte offset of the first replaced byte"""

    end: int
    """Byte offset after the last replaced byte"""

    text: bytes
    """Replacement"""

    seq: int
    """Registration order"""

    @property
    def is_insertion(self) -> bool:
        return self.start == self.end

    @classmethod
    def from_range(cls, start: int, end: int, text: bytes, seq: int) -> 'Edit':
        if not (0 <= start <= end):
            raise ValueError(f'Invalid edit range: start={start}, end={end}')
        return cls(start=start, end=end, text=text, seq=seq)


class JavaSource:
    """Java source file with a tree-sitter syntax tree and pending edits"""

    def __init__(self, path: str, content: bytes, *, indent: str = '    ') -> None:
        self.path: str = path
        self.source: bytes = content
        self.indent: bytes = indent.encode('utf-8')
        self.newline: bytes = b'\r\n' if b'\r\n' in content else b'\n'
        self.parser = JavaParser()
        self.tree: Tree = self.parser.parse(content)
        self.edits: List[Edit] = []
        self.cleared_bodies: Set[int] = set()
        self.seq = 0

    @classmethod
    def from_file(cls, path: str, *, indent: str = '    ') -> 'JavaSource':
        with open(path, 'rb') as f:
            return cls(path, f.read(), indent=indent)

    @classmethod
    def from_text(cls, path: str, text: str, *, indent: str = '    ') -> 'JavaSource':
        return cls(path, text.encode('utf-8'), indent=indent)

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @property
    def text(self) -> str:
        return self.source.decode('utf-8')

    @property
    def has_syntax_errors(self) -> bool:
        return self.root.has_error

    # Queries

    def iter_nodes(self) -> Iterator[Tuple[Node, int, int]]:
        yield from walk_nodes(self.tree.walk())

    def imports(self) -> List[Node]:
        return [node for node in self.root.children if node.type == 'import_declaration']

    def methods(self) -> List[Node]:
        return [node for node, _, _ in self.iter_nodes() if node.type == 'method_declaration']

    def anchor_line(self, node: Node) -> int:
        """One based line number a diagnostic refers to when it reports this node

        Declarations are reported at their name, not at their leading annotations.

        """
        name = node.child_by_field_name('name')
        if name is None:
            name = (
                    find_first_node(node, 'field_declaration', 'variable_declarator', 'identifier') or
                    find_first_node(node, 'constant_declaration', 'variable_declarator', 'identifier') or
                    find_first_node(node, 'local_variable_declaration', 'variable_declarator', 'identifier')
            )
        if name is None:
            name = node
        return name.start_point[0] + 1

    def is_removable(self, node: Node) -> bool:
        kind = kind_of(node)
        if kind is None or kind is ElementKind.IMPORT:
            return False

        parent = node.parent
        if parent is None:
            return False

        if kind is ElementKind.ANNOTATION:
            # Annotations used as annotation arguments cannot be removed
            return parent.type == 'modifiers'

        if kind in CLAUSE_KINDS:
            return True

        if parent.type in CONTAINER_NODE_TYPES:
            return True

        if kind is ElementKind.BLOCK:
            # Bodies of compound statements go together with their statement
            return False

        return self.placeholder_for(node) is not None

    def placeholder_for(self, node: Node) -> Optional[bytes]:
        """Text to replace the node with instead of removing it"""
        parent = node.parent
        if parent is None:
            return None

        if parent.type in SINGLE_STATEMENT_PARENT_TYPES:
            for field in ('body', 'consequence', 'alternative'):
                child = parent.child_by_field_name(field)
                if child is not None and child.start_byte == node.start_byte and child.end_byte == node.end_byte:
                    return b';'

        if parent.type == 'switch_rule' and kind_of(node) is not ElementKind.BLOCK:
            return b'{}'

        return None

    def elements_at(self, line: int) -> List[Node]:
        """Most specific removable elements reported at the given one based line

        Returns the innermost removable elements anchored at the line. If there
        are none, then returns the innermost statement or variable declaration
        spanning the line. Returns an empty list if nothing covers the line.

        """
        anchored: List[Node] = []
        covering: Optional[Node] = None
        for node, lineno, depth in self.iter_nodes():
            if not node.is_named or not self.is_removable(node):
                continue

            if self.anchor_line(node) == line:
                anchored.append(node)
                continue

            kind = kind_of(node)
            if kind in DECLARATION_KINDS or kind is ElementKind.INITIALIZER:
                continue

            first, last = node_span(node)
            if first <= line <= last:
                # Walk order is top-down, so later matches are nested inside earlier ones
                covering = node

        if anchored:
            return [node for node in anchored if not any(other is not node and is_ancestor(node, other) for other in anchored)]

        if covering is not None:
            return [covering]

        return []

    def enclosing_method(self, line: int) -> Optional[Node]:
        """Smallest method declaration whose span includes the given one based line"""
        found: Optional[Node] = None
        for method in self.methods():
            first, last = node_span(method)
            if first <= line <= last:
                if found is None or method.end_byte - method.start_byte < found.end_byte - found.start_byte:
                    found = method
        return found

    def methods_covering(self, line: int) -> List[Node]:
        """Outermost method declarations whose span includes the given one based line"""
        methods = [method for method in self.methods() if node_span(method)[0] <= line <= node_span(method)[1]]
        return [method for method in methods if not any(other is not method and is_ancestor(other, method) for other in methods)]

    def method_return_type(self, method: Node) -> Optional[str]:
        """Source text of the declared return type, None for void methods"""
        type_node = method.child_by_field_name('type')
        if type_node is None or type_node.type == 'void_type':
            return None
        dimensions = method.child_by_field_name('dimensions')
        text = decode_normalize(type_node.text)
        if dimensions is not None:
            text += decode_normalize(dimensions.text)
        return text

    def method_name(self, method: Node) -> str:
        name = method.child_by_field_name('name')
        return '' if name is None else decode_normalize(name.text)

    def method_body(self, method: Node) -> Optional[Node]:
        body = method.child_by_field_name('body')
        if body is None or body.type != 'block':
            return None
        return body

    def body_statements(self, body: Node) -> List[Node]:
        return [child for child in body.named_children if child.type not in COMMENT_NODE_TYPES]

    def has_return(self, body: Node) -> bool:
        """True if the body contains a return statement, lambdas and nested classes excluded"""
        stack = list(body.named_children)
        while stack:
            node = stack.pop()
            if node.type == 'return_statement':
                return True
            if node.type in ('lambda_expression', 'class_body'):
                continue
            stack.extend(node.named_children)
        return False

    # Mutations

    def is_covered(self, start: int, end: int) -> bool:
        """True if an edit of the range would be dropped by a pending replacement

        An insertion is covered by a replacement spanning it on both sides.
        Any other range is covered by a replacement it does not strictly
        contain, which includes identical and partially overlapping ranges.

        """
        for edit in self.edits:
            if edit.is_insertion:
                continue
            if start == end:
                if edit.start < start < edit.end:
                    return True
            elif start < edit.end and edit.start < end:
                if start <= edit.start and edit.end <= end and (start, end) != (edit.start, edit.end):
                    continue
                return True
        return False

    def add_edit(self, start: int, end: int, text: bytes) -> Optional[Edit]:
        """Registers an edit, returns None if it would never be applied

        A replacement supersedes the pending edits inside its range, except
        for insertions at its boundaries, the same way apply_edits() would
        drop them. Therefore the pending edits are exactly the applied ones.

        """
        if self.is_covered(start, end):
            logger.debug(f'Skipping edit inside a pending replacement in {self.path}: {start}:{end}')
            return None

        edit = Edit.from_range(start, end, text, self.seq)
        self.seq += 1

        if not edit.is_insertion:
            self.edits = [e for e in self.edits if not is_superseded(e, edit)]

        self.edits.append(edit)
        return edit

    def is_pending(self, edit: Edit) -> bool:
        return any(e is edit for e in self.edits)

    def delete(self, node: Node) -> Optional[Edit]:
        """Removes the node, returns None if it is already removed by a pending edit"""
        placeholder = self.placeholder_for(node)
        if placeholder is not None:
            return self.add_edit(node.start_byte, node.end_byte, placeholder)

        if self.is_covered(node.start_byte, node.end_byte):
            return None

        start, end = self.expand_to_lines(node.start_byte, node.end_byte)
        return self.add_edit(start, end, b'')

    def remove_import(self, node: Node) -> Optional[Edit]:
        if node.type != 'import_declaration':
            raise ValueError(f'Not an import declaration: {node.type}')
        return self.delete(node)

    def append_return(self, method: Node, literal: str) -> Optional[Edit]:
        """Appends a return statement to the end of the method's body

        Returns None if the method has no body with a closing brace
        or the body is removed by a pending edit.

        """
        body = self.method_body(method)
        if body is None:
            return None

        closing = body.end_byte - 1
        if self.source[closing:closing + 1] != b'}':
            return None

        statement = f'return {literal};'.encode('utf-8')
        line_start = self.line_start(closing)
        if self.source[line_start:closing].strip(SPACES):
            prefix = b'' if self.source[closing - 1:closing] in (b' ', b'\t') else b' '
            return self.add_edit(closing, closing, prefix + statement + b' ')

        statements = self.body_statements(body)
        if statements and statements[-1].start_point[0] != body.start_point[0]:
            indent = self.line_indent(statements[-1].start_byte)
        else:
            indent = self.source[line_start:closing] + self.indent

        return self.add_edit(line_start, line_start, indent + statement + self.newline)

    def clear_body(self, method: Node) -> Optional[Edit]:
        body = self.method_body(method)
        if body is None:
            return None

        edit = self.add_edit(body.start_byte + 1, body.end_byte - 1, b'')
        if edit is not None:
            self.cleared_bodies.add(body.start_byte)
        return edit

    def insert_statement(self, method: Node, snippet: str) -> Optional[Edit]:
        """Inserts a statement at the beginning of the method's body"""
        body = self.method_body(method)
        if body is None:
            return None

        statement = snippet.strip().encode('utf-8')
        opening = body.start_byte + 1
        closing = body.end_byte - 1
        multiline = body.start_point[0] != body.end_point[0]
        indent = self.line_indent(method.start_byte) + self.indent

        if body.start_byte in self.cleared_bodies:
            if multiline:
                text = self.newline + indent + statement + self.newline + self.line_indent(closing)
            else:
                text = b' ' + statement + b' '
        else:
            text = self.newline + indent + statement if multiline else b' ' + statement

        return self.add_edit(opening, opening, text)

    # Printing

    def print(self) -> str:
        """Source text with all pending edits applied"""
        return self.apply_edits().decode('utf-8')

    def commit(self) -> bool:
        """Applies pending edits and reparses, returns True if the source has changed"""
        if not self.edits:
            return False

        content = self.apply_edits()
        changed = content != self.source

        self.source = content
        self.tree = self.parser.parse(content)
        self.edits.clear()
        self.cleared_bodies.clear()
        return changed

    def apply_edits(self) -> bytes:
        if not self.edits:
            return self.source

        kept: List[Edit] = []
        cover: Optional[Edit] = None
        for edit in sorted(self.edits, key=lambda e: (e.start, -e.end, e.seq)):
            if cover is not None and edit.start < cover.end:
                if edit.is_insertion and edit.start == cover.start:
                    kept.append(edit)
                elif edit.end > cover.end:
                    logger.debug(f'Dropping partially overlapping edit in {self.path}: {edit.start}:{edit.end}')
                continue

            kept.append(edit)
            if not edit.is_insertion:
                cover = edit

        parts: List[bytes] = []
        position = 0
        for edit in kept:
            if edit.start >= position:
                parts.append(self.source[position:edit.start])
            parts.append(edit.text)
            position = max(position, edit.end)
        parts.append(self.source[position:])

        return b''.join(parts)

    # Line helpers

    def line_start(self, offset: int) -> int:
        return self.source.rfind(b'\n', 0, offset) + 1

    def line_end(self, offset: int) -> int:
        end = self.source.find(b'\n', offset)
        return len(self.source) if end < 0 else end

    def line_indent(self, offset: int) -> bytes:
        start = self.line_start(offset)
        line = self.source[start:self.line_end(start)]
        return line[:len(line) - len(line.lstrip(SPACES))]

    def expand_to_lines(self, start: int, end: int) -> Tuple[int, int]:
        """Extends the range to whole lines if nothing else is on those lines,
        otherwise to the whitespace following the range on the same line"""
        line_start = self.line_start(start)
        line_end = self.line_end(end)
        before = self.source[line_start:start]
        after = self.source[end:line_end]

        if not before.strip() and not after.strip():
            return line_start, min(line_end + 1, len(self.source))

        while end < line_end and self.source[end:end + 1] in (b' ', b'\t'):
            end += 1
        return start, end


def is_superseded(edit: Edit, cover: Edit) -> bool:
    """True if applying the cover replacement drops the edit"""
    if not (cover.start <= edit.start and edit.end <= cover.end):
        return False
    return not (edit.is_insertion and edit.start in (cover.start, cover.end))
