from typing import Iterator, TypeVar

T = TypeVar("T")


def maybe(value: T | None) -> Iterator[T]:
    """Treats an optional value as a sequence of zero or one element.

    Meant to be used in comprehensions to skip `None`s without nested `if`s:

        [name for node in maybe(parent) for name in names_of(node)]
    """
    if value is not None:
        yield value


def must(value: T | None, message: str = "Unexpected None") -> T:
    assert value is not None, message
    return value


def same_name(lhs: str, rhs: str) -> bool:
    """PowerShell identifiers are case-insensitive."""
    return lhs.casefold() == rhs.casefold()
