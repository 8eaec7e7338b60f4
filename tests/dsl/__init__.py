from .fake_script import FakeScript, fake_workspace
from .marked_range import parse_marked_extents

__all__ = [
    "FakeScript",
    "fake_workspace",
    "parse_marked_extents",
]
