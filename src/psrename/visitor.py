from typing import Callable, Iterator, Type, TypeVar

from psrename.ast import AST

ASTType = TypeVar("ASTType", bound=AST)


def walk(tree: AST) -> Iterator[AST]:
    """Yields `tree` and all its descendants in pre-order.

    Uses an explicit stack of child iterators instead of recursion, so arbitrarily
    deep scripts never hit the interpreter's recursion limit.
    """
    yield tree
    stack = [iter(tree.children)]

    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
        else:
            yield child
            stack.append(iter(child.children))


def find_all(
    tree: AST,
    kind: Type[ASTType],
    predicate: Callable[[ASTType], bool] = lambda _: True,
) -> list[ASTType]:
    """Returns all nodes of the given kind in source order."""
    return [node for node in walk(tree) if isinstance(node, kind) and predicate(node)]


def find_first(
    tree: AST,
    kind: Type[ASTType],
    predicate: Callable[[ASTType], bool] = lambda _: True,
) -> ASTType | None:
    return next(
        (node for node in walk(tree) if isinstance(node, kind) and predicate(node)),
        None,
    )
