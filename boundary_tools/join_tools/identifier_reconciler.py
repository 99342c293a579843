"""Line up join-key columns whose types differ between shape data and extract data.

Shapefiles often store geographic IDs as text (``"001"``) while the extract
stores them as numbers (``1``), or the other way round. Before joining, the
text side is parsed as a number when the other side is numeric. If any value
cannot be parsed the join is refused, naming every key pair that failed.

Per-column metadata (display labels, value labels) lives in
``DataFrame.attrs["column_metadata"]`` as ``{column: {name: value}}``. After
reconciliation both key columns carry the union of both sides' metadata, with
the extract side winning on name collisions since its codebook is richer.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Final, Mapping, Sequence

import numpy as np
import pandas as pd

from boundary_tools.shape_tools.geometry_union import NUMERIC_KIND, STRING_KIND, column_kind
from boundary_tools.utils.errors import KeyTypeMismatch

# =============================================================================
# CONFIGURATION
# =============================================================================

COLUMN_METADATA_ATTR: Final[str] = "column_metadata"
GROUPING_MARK: Final[str] = ","

_NUMBER_RE: Final[re.Pattern[str]] = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")
_INTEGER_RE: Final[re.Pattern[str]] = re.compile(r"[-+]?\d+")
_INT64: Final = np.iinfo(np.int64)

LOGGER = logging.getLogger(__name__)

# =============================================================================
# FUNCTIONS
# =============================================================================


@dataclass(frozen=True)
class KeyColumn:
    """One side of a join key: name, values and metadata."""

    name: str
    values: pd.Series
    metadata: Mapping[str, Any] = field(default_factory=dict)


def parse_number(values: pd.Series) -> pd.Series:
    """Best-effort numeric parse of a text column.

    Grouping commas are dropped and the first number in each value is kept, so
    ``"$1,200"`` -> 1200 and ``"45%"`` -> 45. Missing and blank values stay
    missing. If any other value holds no number at all, *values* is returned
    unchanged so callers can tell the parse failed.

    Returns:
        ``int64`` when every value is a whole number that fits in int64 and
        none is missing, ``float64`` otherwise.
    """
    parsed: list[int | float | None] = []
    for value in values:
        if pd.isna(value) or not str(value).strip():
            parsed.append(None)
            continue
        match = _NUMBER_RE.search(str(value).replace(GROUPING_MARK, ""))
        if match is None:
            return values
        token = match.group()
        parsed.append(int(token) if _INTEGER_RE.fullmatch(token) else float(token))

    if parsed and all(isinstance(p, int) and _INT64.min <= p <= _INT64.max for p in parsed):
        return pd.Series(parsed, index=values.index, name=values.name, dtype="int64")
    return pd.Series(
        [np.nan if p is None else float(p) for p in parsed],
        index=values.index,
        name=values.name,
        dtype="float64",
    )


def merge_metadata(
    shape_meta: Mapping[str, Any],
    data_meta: Mapping[str, Any],
) -> dict[str, Any]:
    """Combine two metadata mappings; *data_meta* wins on shared names."""
    merged = dict(data_meta)
    merged.update({k: v for k, v in shape_meta.items() if k not in data_meta})
    return merged


def _pair_label(shape_name: str, data_name: str) -> str:
    return shape_name if shape_name == data_name else f"{shape_name} -> {data_name}"


def reconcile(shape_col: KeyColumn, data_col: KeyColumn) -> tuple[KeyColumn, KeyColumn]:
    """Make one pair of key columns comparable.

    Returns new :class:`KeyColumn` objects; the inputs are left untouched.

    Raises:
    ------
    KeyTypeMismatch
        One side is text, the other numeric, and the text would not parse.
    """
    shape_kind = column_kind(shape_col.values)
    data_kind = column_kind(data_col.values)
    shape_values, data_values = shape_col.values, data_col.values

    if shape_kind == STRING_KIND and data_kind == NUMERIC_KIND:
        shape_values = parse_number(shape_values)
        if column_kind(shape_values) != NUMERIC_KIND:
            raise KeyTypeMismatch([_pair_label(shape_col.name, data_col.name)])
    elif shape_kind == NUMERIC_KIND and data_kind == STRING_KIND:
        data_values = parse_number(data_values)
        if column_kind(data_values) != NUMERIC_KIND:
            raise KeyTypeMismatch([_pair_label(shape_col.name, data_col.name)])

    metadata = merge_metadata(shape_col.metadata, data_col.metadata)
    return (
        replace(shape_col, values=shape_values, metadata=metadata),
        replace(data_col, values=data_values, metadata=dict(metadata)),
    )


def get_column_metadata(frame: pd.DataFrame) -> dict[str, dict[str, Any]]:
    return {k: dict(v) for k, v in frame.attrs.get(COLUMN_METADATA_ATTR, {}).items()}


def reconcile_keys(
    shape_frame: pd.DataFrame,
    data_frame: pd.DataFrame,
    pairs: Sequence[tuple[str, str]],
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Run :func:`reconcile` for every (shape column, data column) pair.

    Returns:
        Copies of both frames with retyped key columns and merged key
        metadata in ``attrs["column_metadata"]``.

    Raises:
    ------
    KeyTypeMismatch
        Listing every pair that could not be converted.
    """
    shape_out = shape_frame.copy()
    data_out = data_frame.copy()
    shape_meta = get_column_metadata(shape_frame)
    data_meta = get_column_metadata(data_frame)

    failures: list[str] = []
    for shape_name, data_name in pairs:
        try:
            shape_key, data_key = reconcile(
                KeyColumn(shape_name, shape_frame[shape_name], shape_meta.get(shape_name, {})),
                KeyColumn(data_name, data_frame[data_name], data_meta.get(data_name, {})),
            )
        except KeyTypeMismatch as exc:
            failures.extend(exc.pairs)
            continue

        if shape_key.values.dtype != shape_frame[shape_name].dtype:
            LOGGER.debug("Converted shape key %s to %s", shape_name, shape_key.values.dtype)
        if data_key.values.dtype != data_frame[data_name].dtype:
            LOGGER.debug("Converted data key %s to %s", data_name, data_key.values.dtype)
        shape_out[shape_name] = shape_key.values
        data_out[data_name] = data_key.values
        if shape_key.metadata:
            shape_meta[shape_name] = dict(shape_key.metadata)
            data_meta[data_name] = dict(data_key.metadata)

    if failures:
        raise KeyTypeMismatch(failures)

    shape_out.attrs = {**shape_frame.attrs, COLUMN_METADATA_ATTR: shape_meta}
    data_out.attrs = {**data_frame.attrs, COLUMN_METADATA_ATTR: data_meta}
    return shape_out, data_out
