from psrename.ast import AST, Command, InvocationOperator
from psrename.visitor import find_first


def is_dot_sourced(command: Command) -> bool:
    return command.invocation == InvocationOperator.Dot


def contains_dot_sourcing(tree: AST) -> bool:
    """Tells whether any statement in the tree dot-sources another script.

    A dot-sourced script runs in the caller's scope and may declare or read any
    variable, which makes single-file scope analysis unsound.
    """
    return find_first(tree, Command, is_dot_sourced) is not None
