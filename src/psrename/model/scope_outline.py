import dataclasses as D
from typing import Iterator

from psrename.ast import AST, Document, FunctionDefinition, Id, ScriptBlock
from psrename.pretty import PrettyTree

from .declaration_resolver import is_declaration
from .scope_resolver import enclosing_scope


def is_scope(node: AST) -> bool:
    return (
        isinstance(node, (ScriptBlock, FunctionDefinition))
        and enclosing_scope(node) is node
    )


def scope_members(scope: AST) -> Iterator[AST]:
    """Yields the variable declarations and the nested scopes directly owned by
    `scope`, in source order, without descending into the nested scopes."""
    stack = [iter(scope.children)]

    while stack:
        child = next(stack[-1], None)

        match child:
            case None:
                stack.pop()
            case _ if is_scope(child):
                yield child
            case Id.Var() as var if is_declaration(var):
                yield var
            case _:
                stack.append(iter(child.children))


@D.dataclass
class PrettyScope(PrettyTree):
    """Pretty-prints the scopes of a script along with the variables they declare."""

    node: AST

    def node_text(self) -> str:
        match self.node:
            case Document() as doc:
                return f"Document [{doc.uri}]"
            case FunctionDefinition() as fn:
                return f"{fn.kind} {fn.name.name} [{fn.extent}]"
            case Id.Var() as var:
                return f"{var.sigil}{var.name} [{var.extent}]"
            case node:
                return f"{type(node).__qualname__} [{node.extent}]"

    def children(self) -> list[PrettyTree]:
        match self.node:
            case Id.Var():
                return []
            case scope:
                return [PrettyScope(member) for member in scope_members(scope)]

    def __repr__(self):
        return super().__repr__()
