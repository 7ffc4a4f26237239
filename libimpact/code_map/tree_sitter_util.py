from typing import Iterator, Tuple, Optional

from tree_sitter import TreeCursor, Node


def walk_children(cursor: TreeCursor, depth=0, *, max_depth=500) -> Iterator[Tuple[TreeCursor, int]]:
    if depth > max_depth:
        return

    node: Node = cursor.node
    child_count = node.child_count
    if not child_count:
        return

    cursor.goto_first_child()
    for i in range(child_count):
        if i:
            cursor.goto_next_sibling()
        yield cursor, depth
        yield from walk_children(cursor, depth + 1, max_depth=max_depth)

    cursor.goto_parent()


def walk_nodes(cursor: TreeCursor, *, max_depth: int = 500) -> Iterator[Tuple[Node, int, int]]:
    """Yields (node, zero based line index, depth) in document order"""
    for cur, depth in walk_children(cursor, max_depth=max_depth):
        node: Node = cur.node
        yield node, node.start_point[0], depth


def find_first_node(parent: Node, parent_type, *types: str) -> Optional[Node]:
    if parent.type != parent_type:
        return None

    node = parent
    for part in types:
        for child in node.children:
            if child.type == part:
                node = child
                break
        else:
            return None
    return node


def is_ancestor(ancestor: Node, node: Node) -> bool:
    parent = node.parent
    while parent is not None:
        if same_node(parent, ancestor):
            return True
        parent = parent.parent
    return False


def same_node(a: Node, b: Node) -> bool:
    return a.start_byte == b.start_byte and a.end_byte == b.end_byte and a.type == b.type


def node_span(node: Node) -> Tuple[int, int]:
    """One based first and last line numbers of the node"""
    return node.start_point[0] + 1, node.end_point[0] + 1
