from .declaration_resolver import resolve_declaration
from .dot_source import contains_dot_sourcing
from .function_resolver import resolve_function_call
from .locator import find_node_at, find_symbol_at
from .rename_walker import FunctionRenameWalker, VariableRenameWalker
from .scope_outline import PrettyScope
from .scope_resolver import enclosing_scope, is_within_scope
from .script_loader import ScriptLoader

__all__ = [
    "contains_dot_sourcing",
    "enclosing_scope",
    "find_node_at",
    "find_symbol_at",
    "FunctionRenameWalker",
    "is_within_scope",
    "PrettyScope",
    "resolve_declaration",
    "resolve_function_call",
    "ScriptLoader",
    "VariableRenameWalker",
]
