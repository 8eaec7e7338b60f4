from psrename.ast import AST, Extent


class RenameRejection(Exception):
    """Base class of all reasons a rename request can be turned down."""

    message = "Rename rejected"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class NoSymbolAtPosition(RenameRejection):
    message = "Unable to find symbol"

    def __init__(self, line: int, column: int) -> None:
        super().__init__(f"{self.message} at {line}:{column}")
        self.line = line
        self.column = column


class DotSourcingUnsupported(RenameRejection):
    message = "Dot source detected, this is currently not supported, operation aborted"


class DeclarationNotFound(RenameRejection):
    message = "Failed to find variable definition within the current file"


class SymbolNotFound(DeclarationNotFound):
    message = "No variable or command parameter at the given position"


class FunctionDefinitionNotFound(RenameRejection):
    message = "Failed to find function definition within the current file"


class AmbiguousDeclaration(RenameRejection):
    message = "More than one definition could be the target of the rename"

    def __init__(self, candidates: list[AST]) -> None:
        locations = ", ".join(str(c.extent) for c in candidates)
        super().__init__(f"{self.message}: {locations}")
        self.candidates = candidates


class AmbiguousShadowing(RenameRejection):
    message = "Some references were left unrenamed as they are shadowed"

    def __init__(self, shadows: list[Extent]) -> None:
        locations = ", ".join(str(extent) for extent in shadows)
        super().__init__(f"{self.message} by re-declarations at {locations}")
        self.shadows = shadows
