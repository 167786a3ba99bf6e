"""Protocol source references.

Callers decide once whether they hold a protocol name or a file path; the
resolver never re-inspects strings to guess.
"""

from dataclasses import dataclass
from pathlib import Path, PureWindowsPath

from stagewise.workspace import PROTOCOL_EXTENSION


@dataclass(frozen=True, slots=True)
class ProtocolSource:
    """Base for the two ways of naming a protocol document."""

    @staticmethod
    def parse(value: str, *, extension: str = PROTOCOL_EXTENSION) -> "ByName | ByPath":
        """Classify user input as a protocol name or a file path.

        Anything with a path separator, a drive, or the protocol file
        extension is a path; everything else is a name.
        """
        text = value.strip()
        if (
            "/" in text
            or "\\" in text
            or PureWindowsPath(text).drive
            or text.endswith(extension)
        ):
            return ByPath(Path(text))
        return ByName(text)


@dataclass(frozen=True, slots=True)
class ByName(ProtocolSource):
    """A protocol looked up by name in the protocols directory."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class ByPath(ProtocolSource):
    """A protocol document at an explicit path."""

    path: Path

    def __str__(self) -> str:
        return str(self.path)
