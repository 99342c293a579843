"""Exceptions raised while loading boundary files and joining them to extract data.

Each error also derives from the builtin a caller would naturally catch for
the same problem (``ValueError`` for bad input, ``KeyError`` for missing
columns, and so on).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Sequence

if TYPE_CHECKING:
    import pandas as pd


class BoundaryError(Exception):
    """Base class for every error raised by ``boundary_tools``."""


class UnsupportedInputFormat(BoundaryError, ValueError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Expected a .zip or .shp file, got: {path}")


class AmbiguousSelection(BoundaryError, ValueError):
    def __init__(self, candidates: Sequence[str]) -> None:
        self.candidates = list(candidates)
        super().__init__(
            "Multiple shape files found, please set `allow_multiple=True` to combine "
            "them together, or use `layer_filter` to specify a single layer.\n"
            + ", ".join(self.candidates)
        )


class MalformedArchive(BoundaryError, ValueError):
    def __init__(self, path: str, message: str, missing: Iterable[str] = ()) -> None:
        self.path = path
        self.missing = list(missing)
        super().__init__(f"{message} ({path})")


class GeometryLoadFailure(BoundaryError, RuntimeError):
    def __init__(self, path: str, reason: object) -> None:
        self.path = path
        super().__init__(f"Could not read shape file {path}: {reason}")


class SchemaTypeConflict(BoundaryError, TypeError):
    def __init__(self, columns: dict[str, list[str]]) -> None:
        self.columns = columns
        detail = ", ".join(f"{name} ({'/'.join(kinds)})" for name, kinds in columns.items())
        super().__init__(
            f"Cannot combine shape files because variable types don't match: {detail}"
        )


class UnsupportedColumnType(BoundaryError, TypeError):
    def __init__(self, column: str, kind: str) -> None:
        self.column = column
        self.kind = kind
        super().__init__(f"Unexpected variable type in shape file: {column} ({kind})")


class CrsMismatch(BoundaryError, ValueError):
    def __init__(self, crs: Iterable[str]) -> None:
        self.crs = sorted(crs)
        super().__init__(
            "CRS mismatch between input layers: %s.  Re-project first." % ", ".join(self.crs)
        )


class KeyTypeMismatch(BoundaryError, TypeError):
    def __init__(self, pairs: Sequence[str]) -> None:
        self.pairs = list(pairs)
        super().__init__(
            "Variables were numeric in one object but character in the other and "
            "could not be converted:\n" + ", ".join(self.pairs)
        )


class UnknownJoinKey(BoundaryError, KeyError):
    def __init__(self, missing_shape: Sequence[str], missing_data: Sequence[str]) -> None:
        self.missing_shape = list(missing_shape)
        self.missing_data = list(missing_data)
        parts: list[str] = []
        if self.missing_shape:
            parts.append(f"Variables {', '.join(self.missing_shape)} are not in shape data.")
        if self.missing_data:
            parts.append(f"Variables {', '.join(self.missing_data)} are not in data.")
        super().__init__(" ".join(parts))

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class DuplicateKeys(BoundaryError, ValueError):
    def __init__(self, label: str, duplicates: pd.DataFrame) -> None:
        self.label = label
        self.duplicates = duplicates
        super().__init__(
            f"IDs do not uniquely identify observations in {label}.\n"
            + duplicates.to_string(index=False)
        )
