"""Error taxonomy shared by the analysis engine and the result cache."""

from __future__ import annotations


class PacklensError(RuntimeError):
    """Base class for failures surfaced to packlens callers."""


class ParseError(PacklensError):
    """Raised when bundle text or a module manifest cannot be parsed.

    ``position`` locates the offending fragment: a character offset for raw
    bundle text, or a JSON path such as ``modules[0].modules[2]`` for
    manifests.
    """

    def __init__(self, message: str, position: int | str | None = None) -> None:
        self.message = message
        self.position = position
        if position is None:
            super().__init__(message)
        else:
            super().__init__(f"{message} (at {position})")


class OptionError(PacklensError):
    """Raised for unsupported or contradictory analysis options."""


class StoreError(PacklensError):
    """Raised when the durable result store cannot be opened or written."""


__all__ = ["OptionError", "PacklensError", "ParseError", "StoreError"]
