"""Stack several shape layers into one, even when their attribute schemas differ.

Layers from one extract often share most columns but not all of them (a
year-specific name field, an extra area column). Columns a layer lacks are
added with a missing value of the right kind before the rows are stacked:

- string columns   -> ``None``
- numeric columns  -> ``NaN``
- geometry columns -> empty (``None``) geometries

A column that is a string in one layer and numeric in another cannot be
stacked safely, so that is an error rather than a silent upcast to object.
All input layers must share the same CRS.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Sequence

import geopandas as gpd
import numpy as np
import pandas as pd
from geopandas.array import GeometryDtype

from boundary_tools.shape_tools.shape_kinds import SpatialFrame
from boundary_tools.utils.errors import CrsMismatch, SchemaTypeConflict, UnsupportedColumnType
from boundary_tools.utils.logging_helper import progress_level

# =============================================================================
# CONFIGURATION
# =============================================================================

STRING_KIND: Final[str] = "string"
NUMERIC_KIND: Final[str] = "numeric"
GEOMETRY_KIND: Final[str] = "geometry"

LOGGER = logging.getLogger(__name__)

# =============================================================================
# FUNCTIONS
# =============================================================================


@dataclass(frozen=True)
class ColumnTypeDescriptor:
    name: str
    kind: str


def column_kind(series: pd.Series) -> str:
    """Classify *series* as string, numeric or geometry; anything else keeps its dtype name."""
    dtype = series.dtype
    if isinstance(dtype, GeometryDtype):
        return GEOMETRY_KIND
    if pd.api.types.is_bool_dtype(dtype):
        return str(dtype)
    if pd.api.types.is_numeric_dtype(dtype):
        return NUMERIC_KIND
    if pd.api.types.is_string_dtype(dtype) or pd.api.types.is_object_dtype(dtype):
        return STRING_KIND
    return str(dtype)


def column_types(frame: pd.DataFrame) -> list[ColumnTypeDescriptor]:
    return [ColumnTypeDescriptor(str(name), column_kind(frame[name])) for name in frame.columns]


def _global_schema(frames: Sequence[pd.DataFrame]) -> dict[str, str]:
    """Return {column: kind} in first-seen order, or raise on conflicting kinds."""
    seen: dict[str, list[str]] = {}
    for frame in frames:
        for desc in column_types(frame):
            kinds = seen.setdefault(desc.name, [])
            if desc.kind not in kinds:
                kinds.append(desc.kind)

    conflicts = {name: kinds for name, kinds in seen.items() if len(kinds) > 1}
    if conflicts:
        raise SchemaTypeConflict(conflicts)
    return {name: kinds[0] for name, kinds in seen.items()}


def _fill_missing(
    frame: pd.DataFrame,
    schema: dict[str, str],
    fillable: tuple[str, ...],
) -> pd.DataFrame:
    """Return *frame* with every column of *schema* present (a copy if any were added)."""
    missing = [name for name in schema if name not in frame.columns]
    if not missing:
        return frame

    out = frame.copy()
    for name in missing:
        kind = schema[name]
        if kind not in fillable:
            raise UnsupportedColumnType(name, kind)
        if kind == STRING_KIND:
            out[name] = pd.Series([None] * len(out), index=out.index, dtype=object)
        elif kind == NUMERIC_KIND:
            out[name] = np.nan
        else:
            out[name] = gpd.GeoSeries([None] * len(out), index=out.index, crs=getattr(frame, "crs", None))
    return out


def _check_crs(layers: Sequence[gpd.GeoDataFrame | gpd.GeoSeries | SpatialFrame]) -> None:
    crs_set = {str(layer.crs) for layer in layers}
    if len(crs_set) != 1:
        raise CrsMismatch(crs_set)


def _stack(
    frames: Sequence[pd.DataFrame],
    schema: dict[str, str],
    fillable: tuple[str, ...],
) -> pd.DataFrame:
    filled = [_fill_missing(f, schema, fillable) for f in frames]
    stacked = pd.concat(filled, ignore_index=True)
    return stacked[list(schema)]


def union_collections(
    collections: Sequence[gpd.GeoDataFrame],
    verbose: bool = True,
) -> gpd.GeoDataFrame:
    """Concatenate shape layers, filling columns each layer lacks.

    Args:
        collections: Layers in the order their rows should appear.
        verbose:     Log the merge at INFO rather than DEBUG.

    Returns:
        The single input unchanged, or a new GeoDataFrame with
        ``sum(len(c))`` rows, columns in first-seen order, and the first
        layer's active geometry column and CRS.

    Raises:
    ------
    SchemaTypeConflict
        A column name carries different kinds in different layers.
    CrsMismatch
        Layers declare different coordinate reference systems.
    UnsupportedColumnType
        A missing column has a kind with no defined fill value.
    """
    if not collections:
        raise ValueError("No shape data to combine")
    if len(collections) == 1:
        return collections[0]

    first = collections[0]
    schema = _global_schema(collections)
    _check_crs(collections)
    stacked = _stack(collections, schema, (STRING_KIND, NUMERIC_KIND, GEOMETRY_KIND))

    merged = gpd.GeoDataFrame(stacked, geometry=first.geometry.name, crs=first.crs)
    LOGGER.log(
        progress_level(verbose), "Merged %d input files → %d features", len(collections), len(merged)
    )
    return merged


def union_frames(frames: Sequence[pd.DataFrame]) -> pd.DataFrame:
    """Stack plain attribute tables; only string and numeric columns can be filled."""
    if not frames:
        raise ValueError("No shape data to combine")
    if len(frames) == 1:
        return frames[0]
    return _stack(frames, _global_schema(frames), (STRING_KIND, NUMERIC_KIND))


def union_spatial_frames(
    frames: Sequence[SpatialFrame],
    verbose: bool = True,
) -> SpatialFrame:
    """Legacy-form counterpart of :func:`union_collections`."""
    if not frames:
        raise ValueError("No shape data to combine")
    if len(frames) == 1:
        return frames[0]

    tables = [f.data for f in frames]
    schema = _global_schema(tables)
    _check_crs(frames)
    data = _stack(tables, schema, (STRING_KIND, NUMERIC_KIND))
    geometry = gpd.GeoSeries(
        pd.concat([f.geometry for f in frames], ignore_index=True),
        crs=frames[0].crs,
        name=frames[0].geometry.name,
    )
    LOGGER.log(progress_level(verbose), "Merged %d input files → %d features", len(frames), len(data))
    return SpatialFrame(geometry=geometry, data=data)
