from typing import Dict, FrozenSet, Optional

from tree_sitter import Node

from ..common.util import SimpleEnum


class ElementKind(SimpleEnum):
    """Structural kind of a syntax element removed or synthesized while repairing a source file"""

    IMPORT = 'IMPORT'
    """Import declaration"""

    CLASS = 'CLASS'
    """Class declaration (top level, nested, local or anonymous member)"""

    INTERFACE = 'INTERFACE'
    """Interface declaration"""

    ENUM = 'ENUM'
    """Enum declaration"""

    RECORD = 'RECORD'
    """Record declaration"""

    ANNOTATION_TYPE = 'ANNOTATION_TYPE'
    """Annotation type declaration (@interface)"""

    FIELD = 'FIELD'
    """Field or interface constant declaration"""

    METHOD = 'METHOD'
    """Method declaration"""

    CONSTRUCTOR = 'CONSTRUCTOR'
    """Constructor declaration"""

    INITIALIZER = 'INITIALIZER'
    """Static or instance initializer block"""

    ANNOTATION = 'ANNOTATION'
    """Annotation applied to a declaration"""

    SUPERCLASS = 'SUPERCLASS'
    """Extends clause of a class"""

    INTERFACES = 'INTERFACES'
    """Implements clause of a class or extends clause of an interface"""

    THROWS = 'THROWS'
    """Throws clause of a method or constructor"""

    LOCAL_VARIABLE = 'LOCAL_VARIABLE'
    """Local variable declaration statement"""

    EXPRESSION_STATEMENT = 'EXPRESSION_STATEMENT'
    """Method call, assignment or other expression used as a statement"""

    CONSTRUCTOR_CALL = 'CONSTRUCTOR_CALL'
    """Explicit this(...) or super(...) call"""

    BLOCK = 'BLOCK'
    """Nested block statement"""

    IF = 'IF'
    """If statement"""

    LOOP = 'LOOP'
    """For, enhanced for, while and do-while statements"""

    SWITCH = 'SWITCH'
    """Switch statement"""

    TRY = 'TRY'
    """Try statement, with or without resources"""

    SYNCHRONIZED = 'SYNCHRONIZED'
    """Synchronized statement"""

    LABELED = 'LABELED'
    """Labeled statement"""

    RETURN = 'RETURN'
    """Return statement"""

    THROW = 'THROW'
    """Throw statement"""

    ASSERT = 'ASSERT'
    """Assert statement"""

    JUMP = 'JUMP'
    """Break, continue and yield statements"""

    RETURN_ADDED = 'RETURN_ADDED'
    """Synthesized return statement with a default value"""

    TEST_STUB = 'TEST_STUB'
    """Test method body replaced by a dependency removal failure"""


KIND_BY_NODE_TYPE: Dict[str, ElementKind] = {
    'import_declaration': ElementKind.IMPORT,
    'class_declaration': ElementKind.CLASS,
    'interface_declaration': ElementKind.INTERFACE,
    'enum_declaration': ElementKind.ENUM,
    'record_declaration': ElementKind.RECORD,
    'annotation_type_declaration': ElementKind.ANNOTATION_TYPE,
    'field_declaration': ElementKind.FIELD,
    'constant_declaration': ElementKind.FIELD,
    'method_declaration': ElementKind.METHOD,
    'constructor_declaration': ElementKind.CONSTRUCTOR,
    'compact_constructor_declaration': ElementKind.CONSTRUCTOR,
    'static_initializer': ElementKind.INITIALIZER,
    'annotation': ElementKind.ANNOTATION,
    'marker_annotation': ElementKind.ANNOTATION,
    'superclass': ElementKind.SUPERCLASS,
    'super_interfaces': ElementKind.INTERFACES,
    'extends_interfaces': ElementKind.INTERFACES,
    'throws': ElementKind.THROWS,
    'local_variable_declaration': ElementKind.LOCAL_VARIABLE,
    'expression_statement': ElementKind.EXPRESSION_STATEMENT,
    'explicit_constructor_invocation': ElementKind.CONSTRUCTOR_CALL,
    'block': ElementKind.BLOCK,
    'if_statement': ElementKind.IF,
    'for_statement': ElementKind.LOOP,
    'enhanced_for_statement': ElementKind.LOOP,
    'while_statement': ElementKind.LOOP,
    'do_statement': ElementKind.LOOP,
    'switch_expression': ElementKind.SWITCH,
    'try_statement': ElementKind.TRY,
    'try_with_resources_statement': ElementKind.TRY,
    'synchronized_statement': ElementKind.SYNCHRONIZED,
    'labeled_statement': ElementKind.LABELED,
    'return_statement': ElementKind.RETURN,
    'throw_statement': ElementKind.THROW,
    'assert_statement': ElementKind.ASSERT,
    'break_statement': ElementKind.JUMP,
    'continue_statement': ElementKind.JUMP,
    'yield_statement': ElementKind.JUMP,
}

DECLARATION_KINDS: FrozenSet[ElementKind] = frozenset((
    ElementKind.CLASS,
    ElementKind.INTERFACE,
    ElementKind.ENUM,
    ElementKind.RECORD,
    ElementKind.ANNOTATION_TYPE,
    ElementKind.METHOD,
    ElementKind.CONSTRUCTOR,
))

CLAUSE_KINDS: FrozenSet[ElementKind] = frozenset((
    ElementKind.ANNOTATION,
    ElementKind.SUPERCLASS,
    ElementKind.INTERFACES,
    ElementKind.THROWS,
))

# Nodes which hold a sequence of members or statements, any of them can be removed
CONTAINER_NODE_TYPES: FrozenSet[str] = frozenset((
    'program',
    'class_body',
    'interface_body',
    'enum_body_declarations',
    'annotation_type_body',
    'block',
    'constructor_body',
    'switch_block_statement_group',
))

# Statements holding a single nested statement which must be replaced instead of removed
SINGLE_STATEMENT_PARENT_TYPES: FrozenSet[str] = frozenset((
    'if_statement',
    'for_statement',
    'enhanced_for_statement',
    'while_statement',
    'do_statement',
    'labeled_statement',
))

TERMINAL_STATEMENT_TYPES: FrozenSet[str] = frozenset((
    'return_statement',
    'throw_statement',
))

COMMENT_NODE_TYPES: FrozenSet[str] = frozenset((
    'line_comment',
    'block_comment',
))


def kind_of(node: Node) -> Optional[ElementKind]:
    kind = KIND_BY_NODE_TYPE.get(node.type)
    if kind is ElementKind.BLOCK and node.parent is not None and node.parent.type in ('class_body', 'enum_body_declarations'):
        return ElementKind.INITIALIZER
    return kind
