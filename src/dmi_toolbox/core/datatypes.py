"""Shared value objects used across tools."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class PathList:
    """An immutable list of filesystem paths produced or consumed by tools."""

    paths: tuple[Path, ...]

    @property
    def count(self) -> int:
        """Return the number of paths in the list."""
        return len(self.paths)


@dataclass(frozen=True)
class AlphaMaskResult:
    """Result of masking the states of a DMI file.

    Attributes:
        output_path: DMI file that was written.
        states: Names of the masked states, in the order they were written.
        count: Number of masked states.
        total_states: Number of states in the output file, appended ones included.
        appended: True when the states were appended to an existing file.
    """

    output_path: Path
    states: tuple[str, ...] = field(default_factory=tuple)
    count: int = 0
    total_states: int = 0
    appended: bool = False
