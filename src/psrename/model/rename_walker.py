import dataclasses as D
import logging
from typing import Iterator

import lsprotocol.types as L

from psrename.ast import (
    AST,
    AssignOp,
    Command,
    FunctionDefinition,
    Id,
    ScriptBlock,
    StringConstant,
)
from psrename.errors import AmbiguousDeclaration, FunctionDefinitionNotFound
from psrename.util import same_name
from psrename.visitor import find_all, walk

from .declaration_resolver import is_assignment_target, is_param_declaration
from .function_resolver import resolve_function_call
from .scope_resolver import enclosing_scope, is_within_scope

log = logging.root

SIGILS = ("$", "@", "-")


def bare_name(name: str) -> str:
    """Strips the variable or parameter sigil the caller may have typed."""
    return name[1:] if name.startswith(SIGILS) else name


def text_edit(node: AST, new_text: str) -> L.TextEdit:
    return L.TextEdit(range=node.extent.range, new_text=new_text)


@D.dataclass
class WalkState:
    """Per-scope state of a rename walk.

    Nodes of one scope share a state object. Entering a nested scope boundary
    copies it, so whatever a nested scope does to it is dropped on exit.
    """

    should_rename: bool = False


@D.dataclass
class Frame:
    node: AST
    children: Iterator[AST]
    state: WalkState


class VariableRenameWalker:
    def __init__(self, declaration: Id.Var, new_name: str) -> None:
        self.declaration = declaration
        self.old_name = declaration.name
        self.new_name = bare_name(new_name)
        self.is_param = is_param_declaration(declaration)

        self.target: AST = declaration
        self.target_seen = False
        self.edits: list[L.TextEdit] = []
        self.duplicates: list[Id.Var] = []

    def collect_edits(self) -> tuple[list[L.TextEdit], bool]:
        """Walks the declaration's scope and returns the edits renaming every
        reference bound to it, along with whether a shadowing re-declaration cut
        the rename short somewhere.
        """
        root = enclosing_scope(self.declaration) or self.declaration.root

        state = WalkState()
        self.visit(root, state)
        stack = [Frame(root, iter(root.children), state)]

        while stack:
            frame = stack[-1]
            child = next(frame.children, None)

            if child is None:
                stack.pop()
                continue

            if isinstance(child, (ScriptBlock, FunctionDefinition)):
                state = D.replace(frame.state)
            else:
                state = frame.state

            self.visit(child, state)
            stack.append(Frame(child, iter(child.children), state))

        if self.is_param:
            self.rename_call_site_flags()

        return self.edits, len(self.duplicates) > 0

    def visit(self, node: AST, state: WalkState):
        match node:
            case Id.Var(name=name) if same_name(name, self.old_name):
                self.visit_var(node, state)
            case _:
                pass

        log.debug(
            "Visited %s [%s], should_rename=%s",
            type(node).__qualname__,
            node.extent,
            state.should_rename,
        )

    def visit_var(self, var: Id.Var, state: WalkState):
        if var.extent.start == self.declaration.extent.start:
            state.should_rename = True
            self.target = var
            self.target_seen = True
        elif isinstance(var.parent, Command):
            # A variable passed as a command argument is a plain read.
            if self.target_seen and is_within_scope(self.target, var):
                state.should_rename = True
        elif is_assignment_target(var, AssignOp.Equals):
            if not is_within_scope(self.target, var):
                log.info("Shadowing re-declaration of %s at %s", var.name, var.extent)
                self.duplicates.append(var)
                state.should_rename = False

        if state.should_rename:
            self.edits.append(text_edit(var, f"{var.sigil}{self.new_name}"))

    def rename_call_site_flags(self):
        match enclosing_scope(self.declaration):
            case FunctionDefinition() as fn:
                pass
            case _:
                return

        tree = self.declaration.root

        for command in find_all(
            tree,
            Command,
            lambda c: c.name is not None and same_name(c.name, fn.name.name),
        ):
            try:
                if resolve_function_call(tree, command) is not fn:
                    continue
            except (FunctionDefinitionNotFound, AmbiguousDeclaration) as e:
                log.info("Skipping call at %s: %s", command.extent, e)
                continue

            for flag in command.flags:
                if same_name(flag.name, self.old_name):
                    self.edits.append(text_edit(flag, f"-{self.new_name}"))


class FunctionRenameWalker:
    def __init__(self, definition: FunctionDefinition, new_name: str) -> None:
        self.definition = definition
        self.old_name = definition.name.name
        self.new_name = new_name

    def calls_definition(self, command: Command) -> bool:
        if command.name is None or not same_name(command.name, self.old_name):
            return False

        try:
            return resolve_function_call(self.definition.root, command) is self.definition
        except (FunctionDefinitionNotFound, AmbiguousDeclaration) as e:
            log.info("Skipping call at %s: %s", command.extent, e)
            return False

    def collect_edits(self) -> list[L.TextEdit]:
        """Renames the definition and every call resolving to it within the scope
        the function is defined in."""
        scope = enclosing_scope(self.definition.parent or self.definition)
        edits = []

        for node in walk(scope or self.definition.root):
            match node:
                case FunctionDefinition() if node is self.definition:
                    edits.append(text_edit(node.name, self.new_name))
                case Command(name_token=StringConstant() as name) if (
                    self.calls_definition(node)
                ):
                    edits.append(text_edit(name, self.new_name))
                case _:
                    pass

        return edits
