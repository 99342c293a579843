"""Attach extract data to boundary shapes on shared geographic IDs.

The extract table is treated as the logical *left* side of the join:

- ``direction="left"``  keeps every extract row,
- ``direction="right"`` keeps every shape row,
- ``"inner"`` / ``"full"`` behave as usual.

The shape frame stays the left operand of the actual merge so the result is a
GeoDataFrame, which is why directions and suffixes are swapped internally.

Rows that found no partner on the other side are not an error. They are
returned next to the joined table in :class:`JoinProblems` and summarised in a
warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Final, Mapping, Sequence, Union

import geopandas as gpd
import pandas as pd

from boundary_tools.join_tools.identifier_reconciler import (
    COLUMN_METADATA_ATTR,
    get_column_metadata,
    reconcile_keys,
)
from boundary_tools.join_tools.uniqueness import check_for_uniqueness
from boundary_tools.shape_tools.shape_kinds import ShapeKind, SpatialFrame
from boundary_tools.utils.errors import UnknownJoinKey
from boundary_tools.utils.logging_helper import progress_level

# =============================================================================
# CONFIGURATION
# =============================================================================

#: (extract-side suffix, shape-side suffix) for clashing non-key columns
DEFAULT_SUFFIXES: Final[tuple[str, str]] = ("", "_SHAPE")

LOGGER: Final[logging.Logger] = logging.getLogger(__name__)

# =============================================================================
# TYPES
# =============================================================================


class JoinDirection(str, Enum):
    FULL = "full"
    INNER = "inner"
    LEFT = "left"
    RIGHT = "right"


# Extract data is the logical left side but the shape frame is merge()'s left operand
_MERGE_HOW: Final[dict[JoinDirection, str]] = {
    JoinDirection.FULL: "outer",
    JoinDirection.INNER: "inner",
    JoinDirection.LEFT: "right",
    JoinDirection.RIGHT: "left",
}

KeySpec = Union[str, Sequence[str], Mapping[str, str], Sequence[tuple[str, str]]]


@dataclass(frozen=True)
class JoinProblems:
    """Rows without a partner: ``shape`` rows missing from the data and vice versa."""

    shape: pd.DataFrame
    data: pd.DataFrame


@dataclass(frozen=True)
class JoinResult:
    data: gpd.GeoDataFrame | SpatialFrame
    problems: JoinProblems | None = None
    kind: ShapeKind = ShapeKind.SF


def join_problems(result: JoinResult) -> JoinProblems | None:
    """Return the unmatched rows recorded on *result*, if any."""
    return result.problems


# =============================================================================
# FUNCTIONS
# =============================================================================


def normalize_key_spec(by: KeySpec) -> list[tuple[str, str]]:
    """Turn *by* into ``[(shape column, data column), ...]``.

    ``"GISJOIN"`` and ``["STATEFP", "COUNTYFP"]`` name the same column on both
    sides; ``{"GEOID10": "GISJOIN"}`` or ``[("GEOID10", "GISJOIN")]`` pair a
    shape column with a differently named data column.
    """
    if isinstance(by, str):
        return [(by, by)]
    if isinstance(by, Mapping):
        pairs = [(str(shape), str(data)) for shape, data in by.items()]
    else:
        pairs = []
        for item in by:
            if isinstance(item, str):
                pairs.append((item, item))
            elif isinstance(item, tuple) and len(item) == 2:
                pairs.append((str(item[0]), str(item[1])))
            else:
                raise TypeError(f"Cannot use {item!r} as a join key")
    if not pairs:
        raise ValueError("No join keys given")
    return pairs


def _check_shape_form(shape_data: object, expected: type, kind: ShapeKind) -> None:
    if not isinstance(shape_data, expected):
        raise TypeError(
            f"kind={kind.value!r} expects shape data as a {expected.__name__}, "
            f"got {type(shape_data).__name__}"
        )


def _validate_keys(
    shape_data: pd.DataFrame,
    data: pd.DataFrame,
    pairs: Sequence[tuple[str, str]],
) -> None:
    missing_shape = [s for s, _ in pairs if s not in shape_data.columns]
    missing_data = [d for _, d in pairs if d not in data.columns]
    if missing_shape or missing_data:
        raise UnknownJoinKey(missing_shape, missing_data)


def _anti_join(left: pd.DataFrame, right: pd.DataFrame, keys: list[str]) -> pd.DataFrame:
    """Rows of *left* whose key combination never occurs in *right*."""
    marker = left[keys].merge(right[keys].drop_duplicates(), on=keys, how="left", indicator=True)
    return left.loc[(marker["_merge"] == "left_only").to_numpy()]


def _observations(n: int) -> str:
    return "observation" if n == 1 else "observations"


def _report_unmatched(
    shape_data: gpd.GeoDataFrame,
    data: pd.DataFrame,
    keys: list[str],
) -> JoinProblems | None:
    problems = JoinProblems(
        shape=_anti_join(shape_data, data, keys),
        data=_anti_join(data, shape_data, keys),
    )
    sh_num, d_num = len(problems.shape), len(problems.data)
    if not sh_num and not d_num:
        return None

    parts: list[str] = []
    if sh_num:
        parts.append(f"{sh_num} {_observations(sh_num)} in the shape file")
    if d_num:
        parts.append(f"{d_num} {_observations(d_num)} in the data")
    LOGGER.warning(
        "Some observations were not matched in the join (%s). "
        "See `join_problems(...)` for more details.",
        " and ".join(parts),
    )
    return problems


def _joined_metadata(
    shape_data: pd.DataFrame,
    data: pd.DataFrame,
    keys: list[str],
    suffix_pair: tuple[str, str],
) -> dict[str, dict]:
    """Column metadata for the merged frame, following merge()'s suffixing."""
    data_suffix, shape_suffix = suffix_pair
    combined: dict[str, dict] = {}
    for col, meta in get_column_metadata(shape_data).items():
        clash = col not in keys and col in data.columns
        combined[col + shape_suffix if clash else col] = meta
    for col, meta in get_column_metadata(data).items():
        clash = col not in keys and col in shape_data.columns
        combined[col + data_suffix if clash else col] = meta
    return combined


class SimpleFeatureJoiner:
    """Join extract data to a GeoDataFrame."""

    kind = ShapeKind.SF

    def join(
        self,
        data: pd.DataFrame,
        shape_data: gpd.GeoDataFrame,
        by: KeySpec,
        direction: JoinDirection | str = JoinDirection.FULL,
        suffix_pair: tuple[str, str] = DEFAULT_SUFFIXES,
        report_unmatched: bool = True,
        check_unique: bool = False,
    ) -> JoinResult:
        _check_shape_form(shape_data, gpd.GeoDataFrame, self.kind)
        pairs = normalize_key_spec(by)
        direction = JoinDirection(direction)
        _validate_keys(shape_data, data, pairs)

        shape_rec, data_rec = reconcile_keys(shape_data, data, pairs)
        renames = {shape: dat for shape, dat in pairs if shape != dat}
        if renames:
            meta = get_column_metadata(shape_rec)
            shape_rec = shape_rec.rename(columns=renames)
            shape_rec.attrs[COLUMN_METADATA_ATTR] = {renames.get(k, k): v for k, v in meta.items()}
        keys = [dat for _, dat in pairs]

        if check_unique:
            check_for_uniqueness(shape_rec, keys, "shape data")
            check_for_uniqueness(data_rec, keys, "data")

        level = progress_level(report_unmatched)
        LOGGER.log(level, "Merging geometry (%d) with table (%d)…", len(shape_rec), len(data_rec))

        geom_col = shape_rec.geometry.name
        if geom_col in data_rec.columns and geom_col not in keys:
            geom_col = geom_col + suffix_pair[1]

        merged = shape_rec.merge(
            data_rec,
            on=keys,
            how=_MERGE_HOW[direction],
            suffixes=(suffix_pair[1], suffix_pair[0]),
        )
        merged = gpd.GeoDataFrame(merged, geometry=geom_col, crs=shape_rec.crs)
        merged.attrs = {COLUMN_METADATA_ATTR: _joined_metadata(shape_rec, data_rec, keys, suffix_pair)}
        LOGGER.log(level, "Merged result → %d rows, %d columns", *merged.shape)

        problems = _report_unmatched(shape_rec, data_rec, keys) if report_unmatched else None
        return JoinResult(data=merged, problems=problems, kind=self.kind)


class LegacyFrameJoiner:
    """Join extract data to a :class:`SpatialFrame`; same contract as the GeoDataFrame joiner."""

    kind = ShapeKind.SP

    def join(
        self,
        data: pd.DataFrame,
        shape_data: SpatialFrame,
        by: KeySpec,
        direction: JoinDirection | str = JoinDirection.FULL,
        suffix_pair: tuple[str, str] = DEFAULT_SUFFIXES,
        report_unmatched: bool = True,
        check_unique: bool = False,
    ) -> JoinResult:
        _check_shape_form(shape_data, SpatialFrame, self.kind)
        result = SimpleFeatureJoiner().join(
            data,
            shape_data.to_geodataframe(),
            by,
            direction,
            suffix_pair,
            report_unmatched,
            check_unique,
        )
        return JoinResult(
            data=SpatialFrame.from_geodataframe(result.data),
            problems=result.problems,
            kind=self.kind,
        )


JOINERS: Final[dict[ShapeKind, SimpleFeatureJoiner | LegacyFrameJoiner]] = {
    ShapeKind.SF: SimpleFeatureJoiner(),
    ShapeKind.SP: LegacyFrameJoiner(),
}


def spatial_join(
    data: pd.DataFrame,
    shape_data: gpd.GeoDataFrame | SpatialFrame,
    by: KeySpec,
    direction: JoinDirection | str = "full",
    suffix_pair: tuple[str, str] = DEFAULT_SUFFIXES,
    verbose: bool = True,
    kind: ShapeKind | str = ShapeKind.SF,
    check_unique: bool = False,
) -> JoinResult:
    """Join extract *data* to boundary *shape_data*.

    Args:
        data:         Extract table; per-column labels may sit in
                      ``data.attrs["column_metadata"]``.
        shape_data:   Boundaries from :func:`load_boundaries` in the form given
                      by *kind*.
        by:           Join key(s); see :func:`normalize_key_spec`.
        direction:    ``"full"``, ``"inner"``, ``"left"`` (all extract rows) or
                      ``"right"`` (all shape rows).
        suffix_pair:  Suffixes for clashing non-key columns, extract side first.
        verbose:      Log progress and report unmatched rows.
        kind:         Which form *shape_data* is in.
        check_unique: Refuse to join when keys repeat on either side.

    Returns:
        :class:`JoinResult` with the joined boundaries and, when rows went
        unmatched and *verbose* is on, the :class:`JoinProblems`.

    Raises:
    ------
    TypeError
        *shape_data* is not in the form *kind* names.
    UnknownJoinKey
        A key column is missing from either side.
    KeyTypeMismatch
        Text keys on one side could not be read as the other side's numbers.
    """
    return JOINERS[ShapeKind(kind)].join(
        data,
        shape_data,
        by,
        direction,
        suffix_pair,
        report_unmatched=verbose,
        check_unique=check_unique,
    )
