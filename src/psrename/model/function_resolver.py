import logging
from itertools import chain, pairwise

from psrename.ast import AST, Command, FunctionDefinition, If
from psrename.errors import AmbiguousDeclaration, FunctionDefinitionNotFound
from psrename.util import same_name
from psrename.visitor import find_all

from .scope_resolver import function_scope

log = logging.root


def exclusive_branches(lhs: AST, rhs: AST) -> bool:
    """Tells whether two nodes live in different branches of the same `if`."""
    # Maps each ancestor of `rhs` to its child on the path down to `rhs`.
    rhs_path = {id(node): child for child, node in pairwise([rhs, *rhs.ancestors])}

    for child, node in pairwise([lhs, *lhs.ancestors]):
        if (rhs_child := rhs_path.get(id(node))) is not None:
            return isinstance(node, If) and child is not rhs_child

    return False


def visible_definitions(tree: AST, call: Command) -> list[FunctionDefinition]:
    """Same-named definitions ending before the call, plus any definition the call
    is nested in (recursive calls), in source order."""
    name = call.name
    if name is None:
        return []

    enclosing = [a for a in call.ancestors if isinstance(a, FunctionDefinition)]

    return find_all(
        tree,
        FunctionDefinition,
        lambda fn: same_name(fn.name.name, name)
        and (
            fn.extent.precedes(call.extent) or any(fn is outer for outer in enclosing)
        ),
    )


def resolve_function_call(tree: AST, call: Command) -> FunctionDefinition:
    """Finds the function definition a command invokes.

    A single visible definition with the command's name always wins. Otherwise
    the innermost function scope enclosing the call that holds a preceding
    definition is picked, and within it the closest preceding definition. A call
    nested in a definition of the same name (recursion) sees that definition. The
    search ends at the global scope.

    Raises `AmbiguousDeclaration` when the picked definition and another one of
    the same scope sit in different branches of an `if` statement.
    """
    candidates = visible_definitions(tree, call)

    if len(candidates) == 1:
        return candidates[0]

    # Scopes the call can see, innermost first.
    visible_scopes = chain(
        (a for a in call.ancestors if isinstance(a, FunctionDefinition)),
        [None],
    )

    for scope in visible_scopes:
        in_scope = [fn for fn in reversed(candidates) if function_scope(fn) is scope]

        match in_scope:
            case []:
                continue
            case [closest, *others]:
                conflicts = [fn for fn in others if exclusive_branches(closest, fn)]
                if len(conflicts) > 0:
                    raise AmbiguousDeclaration([closest, *conflicts])

                log.debug(
                    "Call at %s resolves to the definition at %s",
                    call.extent,
                    closest.extent,
                )
                return closest

    raise FunctionDefinitionNotFound(
        f"{FunctionDefinitionNotFound.message}: {call.name}"
    )
