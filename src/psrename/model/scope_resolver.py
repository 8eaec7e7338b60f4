from psrename.ast import AST, FunctionDefinition, ScriptBlock


def enclosing_scope(node: AST) -> AST | None:
    """Returns the nearest scope boundary at or above `node`.

    Scope boundaries are script blocks and function definitions. A function body
    and the function's inline parameter list share one scope, so the body script
    block of a function definition resolves to the function definition itself.

    Returns `None` only for detached nodes with no script block above them, which
    the rest of the resolver treats as the global scope.
    """
    scope: AST | None = node

    while scope is not None and not isinstance(scope, (ScriptBlock, FunctionDefinition)):
        scope = scope.parent

    match scope:
        case ScriptBlock(parent=FunctionDefinition() as fn):
            return fn
        case _:
            return scope


def is_global_scope(scope: AST | None) -> bool:
    return scope is None or scope.parent is None


def is_within_scope(target: AST, candidate: AST) -> bool:
    """Tells whether `candidate` sees the scope `target` is declared in.

    Walks up from `candidate` until reaching either the scope of `target` or a
    function definition. Function definitions cut the walk, so a reference inside
    a nested function is not within the scope of an outer declaration.
    """
    target_scope = enclosing_scope(target)
    node = candidate.parent

    while node is not None:
        if isinstance(node, FunctionDefinition) or node is target_scope:
            break
        node = node.parent

    return node is target_scope


def function_scope(node: AST) -> FunctionDefinition | None:
    """The nearest function definition strictly above `node`, or `None` if global."""
    return next(
        (a for a in node.ancestors if isinstance(a, FunctionDefinition)),
        None,
    )
