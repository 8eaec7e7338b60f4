import dataclasses as D
import logging
from enum import StrEnum
from itertools import accumulate, chain

import lsprotocol.types as L

from psrename.ast import AST, Command, Document, FunctionDefinition, Id, StringConstant
from psrename.errors import (
    AmbiguousShadowing,
    DeclarationNotFound,
    DotSourcingUnsupported,
    NoSymbolAtPosition,
    RenameRejection,
)
from psrename.model import (
    FunctionRenameWalker,
    VariableRenameWalker,
    contains_dot_sourcing,
    find_symbol_at,
    resolve_declaration,
    resolve_function_call,
)
from psrename.model.rename_walker import bare_name
from psrename.util import must

log = logging.root


class RenameKind(StrEnum):
    Variable = "variable"
    Function = "function"


@D.dataclass(frozen=True)
class RenameTarget:
    """A validated rename request.

    `declaration` is the variable or parameter token that declares the renamed
    variable, or the `FunctionDefinition` of the renamed function.
    """

    declaration: AST
    old_name: str
    new_name: str
    kind: RenameKind


def symbol_text(node: AST) -> str:
    match node:
        case Id.Var() as var:
            return f"{var.sigil}{var.name}"
        case Id.Flag(name=name):
            return f"-{name}"
        case Id.FnName(name=name) | StringConstant(value=name):
            return name
        case _:
            raise TypeError(f"Not a symbol: {type(node).__name__}")


def resolve_target(tree: AST, line: int, column: int) -> tuple[AST, RenameKind]:
    if contains_dot_sourcing(tree):
        raise DotSourcingUnsupported()

    match symbol := find_symbol_at(tree, line, column):
        case None:
            raise NoSymbolAtPosition(line, column)

        case Id.FnName(parent=FunctionDefinition() as fn):
            return fn, RenameKind.Function

        case StringConstant(parent=Command() as command):
            return resolve_function_call(tree, command), RenameKind.Function

        case Id.Var() | Id.Flag():
            declaration = resolve_declaration(tree, *symbol.extent.start)

            # A `-Name` argument that binds to no parameter in this file belongs to a
            # cmdlet or an external command.
            if isinstance(declaration, Id.Flag):
                raise DeclarationNotFound(
                    f"{DeclarationNotFound.message}: -{declaration.name}"
                )

            return declaration, RenameKind.Variable

        case _:
            raise NoSymbolAtPosition(line, column)


def prepare_rename(
    tree: AST,
    line: int,
    column: int,
    proposed_name: str,
) -> RenameTarget:
    """Checks that the symbol at the 1-based position can be renamed, without
    producing any edits.

    Raises a `RenameRejection` subclass when it cannot.
    """
    declaration, kind = resolve_target(tree, line, column)

    match kind:
        case RenameKind.Function:
            old_name = declaration.to(FunctionDefinition).name.name
            new_name = proposed_name
        case RenameKind.Variable:
            old_name = declaration.to(Id.Var).name
            new_name = bare_name(proposed_name)

    log.info(
        "Renaming %s %s declared at %s to %s",
        kind,
        old_name,
        declaration.extent,
        new_name,
    )

    return RenameTarget(declaration, old_name, new_name, kind)


def rename(
    tree: AST,
    line: int,
    column: int,
    new_name: str,
    strict: bool = False,
) -> list[L.TextEdit]:
    """Renames the symbol at the 1-based position and everything bound to it.

    References cut off by a shadowing re-declaration in a nested scope are left
    untouched. With `strict`, that raises `AmbiguousShadowing` instead of
    returning the partial edits.
    """
    target = prepare_rename(tree, line, column, new_name)

    match target.declaration:
        case FunctionDefinition() as fn:
            return FunctionRenameWalker(fn, target.new_name).collect_edits()

        case declaration:
            walker = VariableRenameWalker(declaration.to(Id.Var), target.new_name)
            edits, shadowed = walker.collect_edits()

    if shadowed:
        shadows = [var.extent for var in walker.duplicates]

        if strict:
            raise AmbiguousShadowing(shadows)

        log.warning(
            "%s: %s",
            AmbiguousShadowing.message,
            ", ".join(str(extent) for extent in shadows),
        )

    return edits


def apply_edits(source: str, edits: list[L.TextEdit]) -> str:
    """Applies non-overlapping edits to `source`, last one first."""
    lines = source.splitlines(keepends=True)
    line_offsets = list(accumulate(chain([0], map(len, lines))))

    def offset_of(pos: L.Position) -> int:
        return line_offsets[pos.line] + pos.character

    def start_of(edit: L.TextEdit) -> tuple[int, int]:
        return edit.range.start.line, edit.range.start.character

    for edit in sorted(edits, key=start_of, reverse=True):
        start, end = offset_of(edit.range.start), offset_of(edit.range.end)
        source = source[:start] + edit.new_text + source[end:]

    return source


class RenameProvider:
    def __init__(self, tree: Document) -> None:
        self.tree = tree

    def prepare(self, pos: L.Position) -> L.PrepareRenamePlaceholder | None:
        line, column = pos.line + 1, pos.character + 1

        try:
            prepare_rename(self.tree, line, column, "")
        except RenameRejection as e:
            log.info("Prepare rename rejected at %s:%s: %s", line, column, e)
            return None

        symbol = must(find_symbol_at(self.tree, line, column))
        return L.PrepareRenamePlaceholder(
            range=symbol.extent.range,
            placeholder=symbol_text(symbol),
        )

    def serve(self, pos: L.Position, new_name: str) -> L.WorkspaceEdit | None:
        line, column = pos.line + 1, pos.character + 1

        try:
            edits = rename(self.tree, line, column, new_name)
        except RenameRejection as e:
            log.info("Rename rejected at %s:%s: %s", line, column, e)
            return None

        return L.WorkspaceEdit(changes={self.tree.uri: edits})
