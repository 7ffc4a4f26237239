from typing import Optional, Tuple

import tree_sitter_java
from tree_sitter import Language, Parser, Tree


class JavaParser:
    name: str = 'Java'
    extensions: Tuple[str] = ('java',)
    mime_types: Tuple[str] = ('text/x-java',)
    tree_sitter_language_name: str = 'java'
    tree_sitter_language: Optional[Language] = None  # Set by init_tree_sitter()

    def __init__(self) -> None:
        init_tree_sitter()
        self.parser = Parser(self.tree_sitter_language)

    def parse(self, content: bytes) -> Tree:
        return self.parser.parse(content)


def init_tree_sitter():
    if JavaParser.tree_sitter_language is None:
        JavaParser.tree_sitter_language = Language(tree_sitter_java.language())
