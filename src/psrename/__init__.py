import logging
import sys
from enum import StrEnum
from pathlib import Path
from textwrap import dedent
from typing import Annotated

import typer
from rich.console import Console

from psrename.ast import Document, PrettyAST
from psrename.errors import RenameRejection
from psrename.model import PrettyScope, ScriptLoader
from psrename.providers import apply_edits, prepare_rename, rename
from psrename.util import must

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="markdown",
)

stdout = Console(markup=False, highlight=False, emoji=False)
stderr = Console(markup=False, highlight=False, emoji=False, stderr=True)

loader = ScriptLoader()


@app.callback()
def main(
    log_file: Annotated[
        Path,
        typer.Option(
            "--log-file",
            envvar="PSRENAME_LOG_FILE",
            help="Where to write the log.",
            dir_okay=False,
        ),
    ] = Path("/tmp/psrename.log"),
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            envvar="PSRENAME_LOG_LEVEL",
            help="One of `DEBUG`, `INFO`, `WARNING` or `ERROR`.",
        ),
    ] = "WARNING",
):
    logging.basicConfig(
        filename=log_file,
        filemode="w",
        level=log_level.upper(),
        force=True,
    )


ScriptPath = Annotated[
    Path,
    typer.Argument(
        help="The PowerShell script, or `-` for standard input.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        allow_dash=True,
    ),
]

Line = Annotated[int, typer.Argument(help="1-based line of the symbol.", min=1)]

Column = Annotated[int, typer.Argument(help="1-based column of the symbol.", min=1)]


def load(path: Path) -> tuple[str, Document]:
    if path == Path("-"):
        uri = "/dev/stdin"
        source = sys.stdin.read()
    else:
        uri = path.absolute().as_uri()
        source = must(loader.load_source(uri))

    return source, must(loader.load(uri, source))


class TreeType(StrEnum):
    AST = "a"
    Scope = "s"


@app.command()
def tree(
    path: ScriptPath,
    tree_type: Annotated[
        TreeType,
        typer.Option(
            "-t",
            "--tree-type",
            help=dedent(
                """\
                The type of tree to print:
                - `a`: The PowerShell AST
                - `s`: The scopes and the variables they declare
                """
            ),
        ),
    ] = TreeType.AST,
):
    _, ast = load(path)

    match tree_type:
        case TreeType.AST:
            tree = PrettyAST(ast)
        case TreeType.Scope:
            tree = PrettyScope(ast)

    stdout.print(str(tree), soft_wrap=True)


@app.command()
def prepare(path: ScriptPath, line: Line, column: Column):
    """Shows what renaming the symbol at LINE:COLUMN would rename."""
    _, ast = load(path)

    try:
        target = prepare_rename(ast, line, column, "")
    except RenameRejection as e:
        stderr.print(str(e), soft_wrap=True)
        raise typer.Exit(1)

    stdout.print(
        f"{target.kind} {target.old_name} declared at {target.declaration.extent}",
        soft_wrap=True,
    )


@app.command("rename")
def rename_command(
    path: ScriptPath,
    line: Line,
    column: Column,
    new_name: Annotated[str, typer.Argument(help="The new name.")],
    strict: Annotated[
        bool,
        typer.Option(
            "--strict",
            help="Fail instead of leaving references shadowed in nested scopes.",
        ),
    ] = False,
    write: Annotated[
        bool,
        typer.Option(
            "-w",
            "--write",
            help="Rewrite the script in place instead of printing it.",
        ),
    ] = False,
):
    """Renames the symbol at LINE:COLUMN and prints the resulting script."""
    source, ast = load(path)

    try:
        edits = rename(ast, line, column, new_name, strict)
    except RenameRejection as e:
        stderr.print(str(e), soft_wrap=True)
        raise typer.Exit(1)

    renamed = apply_edits(source, edits)

    if write and path != Path("-"):
        path.write_text(renamed)
        stderr.print(f"{len(edits)} edit(s) written to {path}")
    else:
        stdout.print(renamed, end="", soft_wrap=True)


if __name__ == "__main__":
    app()
