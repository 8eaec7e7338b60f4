import dataclasses as D
import re
from itertools import chain

import parsy as P

from psrename.ast import (
    AST,
    URI,
    AssignOp,
    Assignment,
    Binary,
    Command,
    Convert,
    Document,
    ExpandableString,
    Extent,
    FlowControl,
    ForEach,
    FunctionDefinition,
    FunctionKind,
    Hashtable,
    Id,
    If,
    IfClause,
    Index,
    InvocationOperator,
    KeyValue,
    MemberAccess,
    Number,
    Param,
    Paren,
    Pipeline,
    ScriptBlock,
    StatementBlock,
    StringConstant,
    StringKind,
    SubExpression,
    SubExpressionKind,
    TypeConstraint,
    TypeLiteral,
    Unary,
    While,
    merge_extents,
)


@D.dataclass(frozen=True)
class Token:
    text: str
    extent: Extent


# Spaces, comments and backtick line continuations. Never consumes a bare newline,
# which terminates statements and command argument lists.
inline_ws = P.regex(r"(?:[ \t]+|`\r?\n|<#[\s\S]*?#>|#[^\n]*)*")

# Any whitespace, including newlines.
any_ws = P.regex(r"(?:\s+|<#[\s\S]*?#>|#[^\n]*)*")

# Whitespace, comments, and statement terminators.
separators = P.regex(r"(?:[\s;]+|<#[\s\S]*?#>|#[^\n]*)*")

terminator = inline_ws >> P.regex(r"[;\n]")


def token(p: P.Parser, ws: P.Parser = inline_ws) -> P.Parser:
    def to_token(start: tuple[int, int], text: str, end: tuple[int, int]) -> Token:
        return Token(text, Extent.from_marks(start, end))

    return ws >> p.mark().combine(to_token)


def sym(s: str) -> P.Parser:
    return token(P.string(s))


def kw(*words: str) -> P.Parser:
    """PowerShell keywords are case-insensitive and may not run into a name."""
    return token(P.regex(r"(?i)(?:%s)(?![\w-])" % "|".join(words)))


def terminated(item: P.Parser) -> P.Parser:
    """Parses `item`s separated by newlines or semicolons."""

    @P.generate
    def items():
        values = []
        yield separators

        while True:
            value = yield item.optional()
            if value is None:
                break

            values.append(value)

            if (yield terminator.optional()) is None:
                break

            yield separators

        return values

    return items


DOLLAR_VAR = r"\$(?:\{[^}]+\}|(?:[A-Za-z_]\w*:)?\w+|[$?^])"
SPLAT_VAR = r"@\w+"
NUMBER = r"\d+(?:\.\d+)?(?![\w])"
SINGLE_QUOTED = r"'(?:[^']|'')*'"
DOUBLE_QUOTED = r'"(?:[^"`]|`[\s\S]|"")*"'
ATTRIBUTE = r"\[[^\[\]]*(?:\[[^\[\]]*\][^\[\]]*)*\]"
TYPE_LITERAL = r"\[[A-Za-z_][\w.]*(?:\[\])?\]"
COMMAND_NAME = r"[A-Za-z_.\\/~][\w.\\/:~-]*"
BAREWORD = r"""[^\s;|(){}\[\]"'$@,#<>&=`-][^\s;|(){}"',]*"""
FLAG = r"-[A-Za-z_]\w*"
BINARY_OPERATOR = (
    r"(?i)-(?:eq|ne|gt|ge|lt|le|c?like|notlike|c?match|notmatch|contains|notcontains"
    r"|in|notin|and|or|xor|band|bor|replace|join|split|f|is|isnot|as)(?![\w-])"
    r"|\.\.|[+*/%]|-(?=[\s$(\d])"
)
UNARY_OPERATOR = r"(?i)-not(?![\w-])|!|-(?=[$(\d])"
ASSIGN_OPERATOR = r"[-+*/%]?=(?!=)"

NESTED_VAR = re.compile(r"(?<!`)" + DOLLAR_VAR)


def var_name(text: str) -> str:
    match text[1:]:
        case braced if braced.startswith("{"):
            return braced[1:-1]
        case name:
            return name


def position_after(line: int, column: int, text: str) -> tuple[int, int]:
    """The 1-based position right after `text` when it starts at `(line, column)`."""
    if (newlines := text.count("\n")) == 0:
        return line, column + len(text)
    return line + newlines, len(text) - text.rfind("\n")


def to_var(t: Token) -> Id.Var:
    return Id.Var(t.extent, var_name(t.text), splatted=t.text.startswith("@"))


def to_bareword(t: Token) -> StringConstant:
    return StringConstant(t.extent, t.text, StringKind.BareWord)


def to_single_quoted(t: Token) -> StringConstant:
    return StringConstant(
        t.extent, t.text[1:-1].replace("''", "'"), StringKind.SingleQuoted
    )


def to_double_quoted(t: Token) -> StringConstant | ExpandableString:
    def nested_var(m: re.Match[str]) -> Id.Var:
        prefix = m.string[: m.start()]
        start = position_after(t.extent.start_line, t.extent.start_column, prefix)
        end = position_after(*start, m.group())
        return Id.Var(Extent(*start, *end), var_name(m.group()))

    nested = [nested_var(m) for m in NESTED_VAR.finditer(t.text)]

    if len(nested) == 0:
        return StringConstant(t.extent, t.text[1:-1], StringKind.DoubleQuoted)

    return ExpandableString(t.extent, t.text[1:-1], nested)


variable = token(P.regex(DOLLAR_VAR) | P.regex(SPLAT_VAR)).map(to_var)
number = token(P.regex(NUMBER)).map(lambda t: Number(t.extent, float(t.text)))
string = token(P.regex(SINGLE_QUOTED)).map(to_single_quoted) | token(
    P.regex(DOUBLE_QUOTED)
).map(to_double_quoted)
bareword = token(P.regex(BAREWORD)).map(to_bareword)
type_literal = token(P.regex(TYPE_LITERAL)).map(
    lambda t: TypeLiteral(t.extent, t.text[1:-1])
)
attribute = token(P.regex(ATTRIBUTE)).map(
    lambda t: TypeConstraint(t.extent, t.text[1:-1])
)


@P.generate
def paren():
    start = yield sym("(")
    body = yield any_ws >> (assignment | pipeline)
    close = yield any_ws >> sym(")")
    return Paren(merge_extents(start, close), body)


@P.generate
def sub_expression():
    start = yield token(P.regex(r"[$@]\("))
    statements = yield statement_list
    close = yield any_ws >> sym(")")
    return SubExpression(
        merge_extents(start, close), SubExpressionKind(start.text), statements
    )


@P.generate
def key_value():
    key = yield token(P.regex(r"[A-Za-z_][\w-]*")).map(to_bareword) | string | variable
    yield sym("=")
    value = yield any_ws >> (assignment | pipeline)
    return KeyValue(merge_extents(key, value), key, value)


@P.generate
def hashtable():
    start = yield token(P.string("@{"))
    pairs = yield terminated(key_value)
    close = yield separators >> sym("}")
    return Hashtable(merge_extents(start, close), pairs)


@P.generate
def param():
    attributes = yield (any_ws >> attribute).many()
    id = yield any_ws >> variable
    default = yield (any_ws >> sym("=") >> any_ws >> expression).optional()
    start = attributes[0] if len(attributes) > 0 else id
    return Param(merge_extents(start, default or id), attributes, id, default)


param_list = param.sep_by(any_ws >> sym(","))


@P.generate
def param_block():
    # Attributes like `[CmdletBinding()]` are accepted but not kept in the tree.
    yield (attribute << separators).many()
    yield kw("param")
    yield any_ws >> sym("(")
    params = yield param_list
    yield any_ws >> sym(")")
    return params


@P.generate
def script_block():
    start = yield sym("{")
    yield separators
    params = yield param_block.optional()
    statements = yield statement_list
    close = yield separators >> sym("}")
    return ScriptBlock(merge_extents(start, close), params or [], statements)


@P.generate
def statement_block():
    start = yield sym("{")
    statements = yield statement_list
    close = yield separators >> sym("}")
    return StatementBlock(merge_extents(start, close), statements)


primary = (
    variable
    | number
    | string
    | sub_expression
    | hashtable
    | script_block
    | paren
    | type_literal
)


@P.generate
def member_suffix():
    operator = yield P.regex(r"::|\.(?!\.)")
    name = yield token(P.regex(r"[A-Za-z_]\w*"), ws=P.success(None))
    member = StringConstant(name.extent, name.text)

    if (yield P.string("(").optional()) is None:
        return lambda target: MemberAccess(
            merge_extents(target, member), target, member, None, operator == "::"
        )

    args = yield (any_ws >> expression).sep_by(any_ws >> sym(","))
    close = yield any_ws >> sym(")")
    return lambda target: MemberAccess(
        merge_extents(target, close), target, member, args, operator == "::"
    )


@P.generate
def index_suffix():
    yield P.string("[")
    index = yield any_ws >> expression
    close = yield any_ws >> sym("]")
    return lambda target: Index(merge_extents(target, close), target, index)


@P.generate
def postfix_expression():
    node = yield primary

    while True:
        suffix = yield (member_suffix | index_suffix).optional()
        if suffix is None:
            return node
        node = suffix(node)


@P.generate
def convert_expression():
    type = yield type_literal
    operand = yield unary_expression
    return Convert(merge_extents(type, operand), type, operand)


@P.generate
def unary_expression():
    op = yield token(P.regex(UNARY_OPERATOR)).optional()

    if op is None:
        return (yield convert_expression | postfix_expression)

    operand = yield unary_expression
    return Unary(merge_extents(op, operand), op.text.lower(), operand)


@P.generate
def expression():
    lhs = yield unary_expression
    rest = yield P.seq(token(P.regex(BINARY_OPERATOR)), any_ws >> unary_expression).many()

    for op, rhs in rest:
        lhs = Binary(merge_extents(lhs, rhs), op.text.lower(), lhs, rhs)

    return lhs


command_argument = postfix_expression | bareword


@P.generate
def flag_element():
    """A parameter token, optionally bound to its argument by a colon, e.g.
    `-Name:$value`."""
    name = yield token(P.regex(FLAG))
    flag = Id.Flag(name.extent, name.text[1:])

    if (yield P.string(":").optional()) is None:
        return [flag]

    return [flag, (yield command_argument)]


command_element = flag_element | command_argument.map(lambda arg: [arg])


@P.generate
def command():
    op = yield token(P.regex(r"[.&](?=[ \t])")).optional()

    if op is None:
        name = yield token(P.regex(COMMAND_NAME)).map(to_bareword)
        invocation = InvocationOperator.Unqualified
    else:
        name = yield command_argument
        invocation = InvocationOperator(op.text)

    groups = yield command_element.many()
    args = list(chain.from_iterable(groups))
    return Command(
        merge_extents(op or name, args[-1] if len(args) > 0 else name),
        invocation,
        [name, *args],
    )


@P.generate
def pipeline():
    first = yield command | expression
    rest = yield (inline_ws >> P.string("|") >> any_ws >> (command | expression)).many()

    if len(rest) == 0:
        return first

    return Pipeline(merge_extents(first, rest[-1]), [first, *rest])


@P.generate
def assignment():
    target = yield postfix_expression

    if not isinstance(target, (Id.Var, MemberAccess, Index)):
        return (yield P.fail("an assignable expression"))

    op = yield token(P.regex(ASSIGN_OPERATOR))
    value = yield any_ws >> (assignment | pipeline)
    return Assignment(merge_extents(target, value), target, AssignOp(op.text), value)


@P.generate
def function_definition():
    keyword = yield kw("function", "filter")
    name = yield token(P.regex(r"(?:[A-Za-z]+:)?[\w.-]+"))
    params = yield (sym("(") >> param_list << any_ws << sym(")")).optional()
    body = yield any_ws >> script_block
    return FunctionDefinition(
        merge_extents(keyword, body),
        FunctionKind(keyword.text.lower()),
        Id.FnName(name.extent, name.text),
        params or [],
        body,
    )


@P.generate
def condition():
    yield sym("(")
    value = yield any_ws >> (assignment | pipeline)
    yield any_ws >> sym(")")
    return value


@P.generate
def if_statement():
    keyword = yield kw("if")
    clauses = []

    cond = yield condition
    body = yield any_ws >> statement_block
    clauses.append(IfClause(merge_extents(keyword, body), cond, body))

    while True:
        elseif = yield (any_ws >> kw("elseif")).optional()
        if elseif is None:
            break
        cond = yield condition
        body = yield any_ws >> statement_block
        clauses.append(IfClause(merge_extents(elseif, body), cond, body))

    else_body = yield (any_ws >> kw("else") >> any_ws >> statement_block).optional()
    return If(
        merge_extents(keyword, else_body or clauses[-1]), clauses, else_body
    )


@P.generate
def foreach_statement():
    keyword = yield kw("foreach")
    yield sym("(")
    var = yield any_ws >> variable
    yield kw("in")
    iterable = yield any_ws >> pipeline
    yield any_ws >> sym(")")
    body = yield any_ws >> statement_block
    return ForEach(merge_extents(keyword, body), var, iterable, body)


@P.generate
def while_statement():
    keyword = yield kw("while")
    cond = yield condition
    body = yield any_ws >> statement_block
    return While(merge_extents(keyword, body), cond, body)


@P.generate
def flow_control():
    keyword = yield kw("return", "throw", "break", "continue", "exit")
    value = yield pipeline.optional()
    return FlowControl(merge_extents(keyword, value or keyword), keyword.text.lower(), value)


statement = (
    function_definition
    | if_statement
    | foreach_statement
    | while_statement
    | flow_control
    | assignment
    | pipeline
)

statement_list = terminated(statement)


@P.generate
def document():
    yield separators
    params = yield param_block.optional()
    statements = yield statement_list
    yield separators >> P.eof
    return params or [], statements


def parse_script(source: str, uri: URI = "untitled:script.ps1") -> Document:
    """Parses a PowerShell script into a `Document`.

    Raises `parsy.ParseError` when the script falls outside the supported syntax.
    """
    source = source.replace("\r\n", "\n")
    params, statements = document.parse(source)

    lines = source.split("\n")
    extent = Extent(1, 1, len(lines), len(lines[-1]) + 1)

    return Document(extent, params, statements, uri)


def parse_expression(source: str) -> AST:
    """Parses a single statement. Mostly useful for tests and debugging."""
    return (separators >> statement << separators << P.eof).parse(source)

