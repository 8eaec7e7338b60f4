import dataclasses as D
from enum import StrEnum
from itertools import chain
from typing import Annotated, Any, Iterable, Type, TypeVar

import lsprotocol.types as L

from psrename.pretty import PrettyTree
from psrename.util import maybe

URI = Annotated[str, "URI"]

ASTType = TypeVar("ASTType", bound="AST")


@D.dataclass(frozen=True, order=True)
class Extent:
    """A source span in PowerShell parser coordinates.

    Lines and columns are 1-based, and `end_column` points one past the last
    character, i.e. `$x` at the start of a line spans columns 1 to 3.
    """

    start_line: int
    start_column: int
    end_line: int
    end_column: int

    @property
    def start(self) -> tuple[int, int]:
        return (self.start_line, self.start_column)

    @property
    def end(self) -> tuple[int, int]:
        return (self.end_line, self.end_column)

    @property
    def range(self) -> L.Range:
        """The same span as a 0-based LSP range."""
        return L.Range(
            L.Position(self.start_line - 1, self.start_column - 1),
            L.Position(self.end_line - 1, self.end_column - 1),
        )

    def starts_at(self, line: int, column: int) -> bool:
        return self.start == (line, column)

    def contains(self, line: int, column: int) -> bool:
        # A cursor placed right after the last character still touches the span.
        return self.start <= (line, column) <= self.end

    def precedes(self, other: "Extent") -> bool:
        return self.end <= other.start

    def __str__(self) -> str:
        return (
            f"{self.start_line}:{self.start_column}-{self.end_line}:{self.end_column}"
        )

    @staticmethod
    def from_marks(start: tuple[int, int], end: tuple[int, int]) -> "Extent":
        """Converts 0-based `(line, column)` pairs, as reported by `parsy`."""
        return Extent(start[0] + 1, start[1] + 1, end[0] + 1, end[1] + 1)


def extent_of(value: Any) -> Extent:
    """Accepts an `Extent` or anything carrying one, e.g. an AST node or a token."""
    return value if isinstance(value, Extent) else value.extent


def merge_extents(lhs: Any, rhs: Any) -> Extent:
    start, end = extent_of(lhs), extent_of(rhs)
    assert start.start <= end.end
    return Extent(start.start_line, start.start_column, end.end_line, end.end_column)


@D.dataclass
class AST:
    extent: Extent

    def __post_init__(self):
        self.parent: AST | None = None

        for child in self.children:
            child.parent = self

    def to(self, expect_type: Type[ASTType]) -> ASTType:
        if not isinstance(self, expect_type):
            raise TypeError(
                f"Expected {expect_type.__qualname__}, but got {type(self).__name__}"
            )

        return self

    @property
    def children(self) -> Iterable["AST"]:
        return []

    @property
    def ancestors(self) -> Iterable["AST"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    @property
    def root(self) -> "AST":
        *_, root = chain([self], self.ancestors)
        return root

    @property
    def pretty_tree(self) -> str:
        return str(PrettyAST(self))


@D.dataclass
class Expr(AST):
    pass


class Id:
    @D.dataclass
    class Var(Expr):
        """A variable expression, e.g. `$name`, `${name}` or the splat `@name`."""

        name: str
        splatted: bool = False

        @property
        def sigil(self) -> str:
            return "@" if self.splatted else "$"

    @D.dataclass
    class Flag(AST):
        """A command parameter token, e.g. `-Name` in `Greet -Name World`."""

        name: str

    @D.dataclass
    class FnName(AST):
        """The name token of a function definition."""

        name: str


class StringKind(StrEnum):
    BareWord = "bare"
    SingleQuoted = "single"
    DoubleQuoted = "double"


@D.dataclass
class StringConstant(Expr):
    value: str
    kind: StringKind = StringKind.BareWord


@D.dataclass
class ExpandableString(Expr):
    value: str
    nested: list[Id.Var] = D.field(default_factory=list)

    @property
    def children(self) -> Iterable[AST]:
        return self.nested


@D.dataclass
class Number(Expr):
    value: float


@D.dataclass
class TypeLiteral(Expr):
    name: str


@D.dataclass
class TypeConstraint(AST):
    """An attribute or type constraint on a parameter, e.g. `[string]`."""

    name: str


@D.dataclass
class Convert(Expr):
    type: TypeLiteral
    operand: Expr

    @property
    def children(self) -> Iterable[AST]:
        return [self.type, self.operand]


@D.dataclass
class Binary(Expr):
    op: str
    lhs: Expr
    rhs: Expr

    @property
    def children(self) -> Iterable[AST]:
        return [self.lhs, self.rhs]


@D.dataclass
class Unary(Expr):
    op: str
    operand: Expr

    @property
    def children(self) -> Iterable[AST]:
        return [self.operand]


@D.dataclass
class MemberAccess(Expr):
    target: Expr
    member: StringConstant
    args: list[AST] | None = None
    static: bool = False

    @property
    def children(self) -> Iterable[AST]:
        return chain([self.target, self.member], *maybe(self.args))


@D.dataclass
class Index(Expr):
    target: Expr
    index: AST

    @property
    def children(self) -> Iterable[AST]:
        return [self.target, self.index]


@D.dataclass
class Paren(Expr):
    body: AST

    @property
    def children(self) -> Iterable[AST]:
        return [self.body]


class SubExpressionKind(StrEnum):
    Dollar = "$("
    Array = "@("


@D.dataclass
class SubExpression(Expr):
    kind: SubExpressionKind
    statements: list[AST]

    @property
    def children(self) -> Iterable[AST]:
        return self.statements


@D.dataclass
class KeyValue(AST):
    key: Expr
    value: AST

    @property
    def children(self) -> Iterable[AST]:
        return [self.key, self.value]


@D.dataclass
class Hashtable(Expr):
    pairs: list[KeyValue]

    @property
    def children(self) -> Iterable[AST]:
        return self.pairs


@D.dataclass
class Param(AST):
    """A parameter declaration, either in `function f($x)` or in `param($x)`."""

    attributes: list[TypeConstraint]
    id: Id.Var
    default: Expr | None = None

    @property
    def children(self) -> Iterable[AST]:
        return chain(self.attributes, [self.id], maybe(self.default))


@D.dataclass
class ScriptBlock(Expr):
    """A `{ ... }` block. Introduces a new variable scope."""

    params: list[Param]
    statements: list[AST]

    @property
    def children(self) -> Iterable[AST]:
        return chain(self.params, self.statements)


@D.dataclass
class Document(ScriptBlock):
    """The whole script file, i.e. the global scope."""

    uri: URI = "untitled:script.ps1"


@D.dataclass
class StatementBlock(AST):
    """The body of `if`, `foreach` and `while`. Does not introduce a scope."""

    statements: list[AST]

    @property
    def children(self) -> Iterable[AST]:
        return self.statements


class FunctionKind(StrEnum):
    Function = "function"
    Filter = "filter"


@D.dataclass
class FunctionDefinition(AST):
    kind: FunctionKind
    name: Id.FnName
    params: list[Param]
    body: ScriptBlock

    @property
    def children(self) -> Iterable[AST]:
        return chain([self.name], self.params, [self.body])

    @property
    def all_params(self) -> list[Param]:
        """Parameters declared both inline and in the body's `param()` block."""
        return self.params + self.body.params


class AssignOp(StrEnum):
    Equals = "="
    PlusEquals = "+="
    MinusEquals = "-="
    MultiplyEquals = "*="
    DivideEquals = "/="
    RemainderEquals = "%="


@D.dataclass
class Assignment(AST):
    target: Expr
    op: AssignOp
    value: AST

    @property
    def children(self) -> Iterable[AST]:
        return [self.target, self.value]


class InvocationOperator(StrEnum):
    Unqualified = ""
    Ampersand = "&"
    Dot = "."


@D.dataclass
class Command(AST):
    invocation: InvocationOperator
    elements: list[AST]

    @property
    def children(self) -> Iterable[AST]:
        return self.elements

    @property
    def name_token(self) -> StringConstant | None:
        match self.elements:
            case [StringConstant(kind=StringKind.BareWord) as name, *_]:
                return name
            case _:
                return None

    @property
    def name(self) -> str | None:
        return None if (token := self.name_token) is None else token.value

    @property
    def flags(self) -> list[Id.Flag]:
        return [e for e in self.elements if isinstance(e, Id.Flag)]


@D.dataclass
class Pipeline(AST):
    elements: list[AST]

    @property
    def children(self) -> Iterable[AST]:
        return self.elements


@D.dataclass
class IfClause(AST):
    condition: AST
    body: StatementBlock

    @property
    def children(self) -> Iterable[AST]:
        return [self.condition, self.body]


@D.dataclass
class If(AST):
    clauses: list[IfClause]
    else_body: StatementBlock | None = None

    @property
    def children(self) -> Iterable[AST]:
        return chain(self.clauses, maybe(self.else_body))


@D.dataclass
class ForEach(AST):
    variable: Id.Var
    iterable: AST
    body: StatementBlock

    @property
    def children(self) -> Iterable[AST]:
        return [self.variable, self.iterable, self.body]


@D.dataclass
class While(AST):
    condition: AST
    body: StatementBlock

    @property
    def children(self) -> Iterable[AST]:
        return [self.condition, self.body]


@D.dataclass
class FlowControl(AST):
    keyword: str
    value: AST | None = None

    @property
    def children(self) -> Iterable[AST]:
        return maybe(self.value)


ESCAPE_TABLE: dict[int, str] = str.maketrans(
    {"\n": r"\n", "\t": r"\t", "\r": r"\r", '"': r"\""}
)


def escape(s: str, size: int = 50) -> str:
    escaped = s[0:size].translate(ESCAPE_TABLE)
    postfix = "" if len(s) <= size else f"[{len(s) - size} characters]"
    return f'"{escaped}{postfix}"'


@D.dataclass
class PrettyAST(PrettyTree):
    """A class for pretty-printing a PowerShell AST."""

    node: Any
    label: str | None = None

    def node_text(self) -> str:
        match self.node:
            case Document() as doc:
                repr = f"{doc.__class__.__qualname__} [{doc.uri}]"
            case AST() as ast:
                repr = f"{ast.__class__.__qualname__} [{ast.extent}]"
            case [_, *_]:
                repr = "[...]"
            case StrEnum():
                repr = escape(str(self.node))
            case str():
                repr = escape(self.node)
            case _:
                repr = str(self.node)

        return repr if self.label is None else f"{self.label}={repr}"

    def children(self) -> list["PrettyTree"]:
        match self.node:
            case AST() as ast:
                return [
                    PrettyAST(value, f.name)
                    for f in D.fields(ast)
                    if f.name not in ("extent", "uri")
                    if (value := getattr(ast, f.name)) is not None
                    if value is not False and value != []
                ]
            case list() as array:
                return [PrettyAST(value, f"[{i}]") for i, value in enumerate(array)]
            case _:
                return []

    def __repr__(self):
        return super().__repr__()
