from .rename_provider import (
    RenameKind,
    RenameProvider,
    RenameTarget,
    apply_edits,
    prepare_rename,
    rename,
)

__all__ = [
    "apply_edits",
    "prepare_rename",
    "rename",
    "RenameKind",
    "RenameProvider",
    "RenameTarget",
]
