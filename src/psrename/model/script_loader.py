import logging
from pathlib import Path
from typing import Iterable
from urllib.parse import unquote, urlparse

from psrename.ast import URI, Document
from psrename.parsing import parse_script
from psrename.util import maybe

log = logging.root

SCRIPT_SUFFIXES = (".ps1", ".psm1")


def path_of(uri: URI) -> Path:
    """Maps a `file:` URI, or a plain path, to an absolute path."""
    parsed = urlparse(uri)
    return Path(unquote(parsed.path) if parsed.scheme == "file" else uri).absolute()


class ScriptLoader:
    """Reads, parses and caches PowerShell scripts by URI."""

    def __init__(self) -> None:
        self.trees: dict[URI, Document] = {}

    def load_source(self, uri: URI) -> str | None:
        path = path_of(uri)
        return path.read_text() if path.is_file() else None

    def load(self, uri: URI, source: str | None = None) -> Document | None:
        if source is None:
            source = self.load_source(uri)

        if source is None:
            log.info("Script not found: %s", uri)
            return None

        tree = parse_script(source, uri)
        self.trees[uri] = tree
        return tree

    def get(self, uri: URI, source: str | None = None) -> Document | None:
        return self.trees.get(uri) if uri in self.trees else self.load(uri, source)

    def invalidate(self, uri: URI):
        self.trees.pop(uri, None)

    def scan_script_files(self, root: Path) -> Iterable[Path]:
        root = root.resolve()

        for dir_path, dir_names, file_names in root.walk():
            if ".git" in dir_names:
                dir_names.remove(".git")

            yield from (
                dir_path.joinpath(f)
                for f in sorted(file_names)
                if f.lower().endswith(SCRIPT_SUFFIXES)
            )

    def load_all(self, root: Path) -> Iterable[Document]:
        return (
            tree
            for path in self.scan_script_files(root)
            for tree in maybe(self.load(path.as_uri()))
        )
