from typing import Iterator, Type, TypeVar

from psrename.ast import AST, Command, FunctionDefinition, Id, StringConstant

ASTType = TypeVar("ASTType", bound=AST)


def nodes_at(tree: AST, line: int, column: int) -> Iterator[AST]:
    """Yields all nodes whose extent covers the position, outermost first.

    Subtrees not covering the position are pruned, so this only ever descends
    along the path to the position.
    """
    stack = [tree]

    while stack:
        node = stack.pop()
        if node.extent.contains(line, column):
            yield node
            stack.extend(reversed(list(node.children)))


def find_node_at(
    tree: AST,
    line: int,
    column: int,
    kind: Type[ASTType] = AST,
) -> ASTType | None:
    """Returns the deepest node of `kind` starting exactly at `(line, column)`.

    An outer expression and its first token can share a start position, e.g. a
    command and its name, in which case the innermost one wins.
    """
    found = None

    for node in nodes_at(tree, line, column):
        if isinstance(node, kind) and node.extent.starts_at(line, column):
            found = node

    return found


def is_renameable(node: AST) -> bool:
    match node:
        case Id.Var() | Id.Flag() | Id.FnName():
            return True
        case StringConstant(parent=Command() as command):
            return command.name_token is node
        case _:
            return False


def find_symbol_at(tree: AST, line: int, column: int) -> AST | None:
    """Returns the renameable symbol under the cursor.

    Prefers a symbol starting exactly at the position. Otherwise falls back to the
    narrowest symbol covering it, so that a cursor placed in the middle of a name
    still works. A cursor on the `function` keyword selects the function name.
    """
    covering = list(nodes_at(tree, line, column))
    starting = [node for node in covering if node.extent.starts_at(line, column)]

    for node in reversed(starting):
        match node:
            case FunctionDefinition() as fn:
                return fn.name
            case _ if is_renameable(node):
                return node

    return next((node for node in reversed(covering) if is_renameable(node)), None)
