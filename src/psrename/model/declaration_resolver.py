import logging

from psrename.ast import (
    AST,
    Assignment,
    AssignOp,
    Command,
    FunctionDefinition,
    Id,
    Param,
)
from psrename.errors import SymbolNotFound
from psrename.util import same_name
from psrename.visitor import find_all

from .locator import find_node_at
from .scope_resolver import enclosing_scope, is_global_scope, is_within_scope

log = logging.root


def is_assignment_target(var: Id.Var, op: AssignOp | None = None) -> bool:
    match var.parent:
        case Assignment() as assignment if assignment.target is var:
            return op is None or assignment.op == op
        case _:
            return False


def is_param_declaration(var: AST) -> bool:
    match var.parent:
        case Param() as param:
            return param.id is var
        case _:
            return False


def is_declaration(var: Id.Var) -> bool:
    return is_assignment_target(var) or is_param_declaration(var)


def symbol_name(node: AST) -> str:
    match node:
        case Id.Var() | Id.Flag() | Id.FnName():
            return node.name
        case _:
            raise SymbolNotFound()


def binds_named_argument(
    candidate: Id.Var,
    reference: AST,
    target_scope: AST | None,
) -> bool:
    """Tells whether `reference` is a `-Name` argument of a call to the function
    declaring `candidate` as a parameter.

        function Greet($name) { ... }
                       ^^^^^ candidate
        Greet -name World
              ^^^^^ reference
    """
    match enclosing_scope(candidate), reference:
        case FunctionDefinition() as fn, Id.Flag(parent=Command() as command):
            return (
                is_param_declaration(candidate)
                and command.name is not None
                and same_name(fn.name.name, command.name)
                and fn.parent is not None
                and enclosing_scope(fn.parent) is target_scope
            )
        case _:
            return False


def resolve_declaration(tree: AST, line: int, column: int) -> Id.Var | Id.Flag:
    """Finds the declaration that the variable or parameter at the position binds to.

    Candidates are assignment targets and parameter declarations with the same
    name that end before the reference starts. They are examined from the closest
    one backwards, and the first one satisfying any of the following wins:

    1. It is declared in the same scope as the reference.
    2. The reference is itself an assignment target, in which case the reference
       starts a new binding and is its own declaration.
    3. It is declared in the global scope, and the reference is a plain read.
    4. It is a function parameter, and the reference is the matching `-Name`
       argument of a call to that function from the reference's scope.
    5. The reference sits in the candidate's scope without crossing a function
       definition.

    When nothing matches, including when there are no candidates at all, the
    reference is its own declaration (first use declares).
    """
    reference = find_node_at(tree, line, column, Id.Var) or find_node_at(
        tree, line, column, Id.Flag
    )

    if reference is None:
        raise SymbolNotFound()

    name = symbol_name(reference)
    target_scope = enclosing_scope(reference)

    # A `-Name` argument can only ever bind to a parameter, never to a variable
    # assigned somewhere along the way.
    declares = is_param_declaration if isinstance(reference, Id.Flag) else is_declaration

    candidates = find_all(
        tree,
        Id.Var,
        lambda var: declares(var)
        and same_name(var.name, name)
        and var.extent.precedes(reference.extent),
    )

    if len(candidates) == 0:
        log.debug("No declaration precedes %s, treating it as the declaration", name)
        return reference

    is_assignment = isinstance(reference, Id.Var) and is_assignment_target(reference)

    for candidate in reversed(candidates):
        candidate_scope = enclosing_scope(candidate)

        if candidate_scope is target_scope:
            return candidate

        if is_assignment:
            return reference

        if is_global_scope(candidate_scope):
            return candidate

        if binds_named_argument(candidate, reference, target_scope):
            return candidate

        if is_within_scope(candidate, reference):
            return candidate

    return reference
