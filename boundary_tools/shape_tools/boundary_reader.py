"""Read the boundary files that ship with a survey extract.

Typical use::

    from boundary_tools.shape_tools.boundary_reader import load_boundaries

    shapes = load_boundaries("nhgis0008_shape.zip", layer_filter=contains("tract"))

The pipeline:

1.  Resolve *path* (a ``.shp`` or an extract ``.zip``) to the shapefiles to read,
    unpacking into a temporary directory when needed.
2.  Detect each file's attribute encoding from its ``.cpg`` companion.
3.  Read each file with the geometry backend.
4.  Stack the layers into one collection, filling columns a layer lacks.

The temporary directory is gone by the time this function returns or raises.
"""

from __future__ import annotations

import logging
from pathlib import Path

import geopandas as gpd

from boundary_tools.shape_tools.archive_resolver import resolve_shape_files
from boundary_tools.shape_tools.encoding_detector import detect_encodings
from boundary_tools.shape_tools.geometry_loader import GeometryBackend, GeoPandasBackend, load_geometry
from boundary_tools.shape_tools.geometry_union import union_collections, union_spatial_frames
from boundary_tools.shape_tools.shape_kinds import ShapeKind, SpatialFrame
from boundary_tools.utils.file_select import LayerFilter

LOGGER = logging.getLogger(__name__)


def load_boundaries(
    path: str | Path,
    layer_filter: LayerFilter = None,
    allow_multiple: bool = True,
    verbose: bool = True,
    kind: ShapeKind = ShapeKind.SF,
    backend: GeometryBackend | None = None,
) -> gpd.GeoDataFrame | SpatialFrame:
    """Load every selected layer of *path* into one boundary collection.

    Args:
        path:           ``.shp`` file or ``.zip`` extract.
        layer_filter:   Layers to load from a multi-layer extract (names, globs,
                        or the selectors in :mod:`boundary_tools.utils.file_select`).
        allow_multiple: Combine several matching layers; if ``False`` that is an error.
        verbose:        Report progress at INFO level.
        kind:           ``ShapeKind.SF`` for a GeoDataFrame, ``ShapeKind.SP`` for a
                        :class:`SpatialFrame`.
        backend:        Geometry reader; defaults to :class:`GeoPandasBackend`.

    Returns:
        The combined layers in the requested form.
    """
    kind = ShapeKind(kind)
    if backend is None:
        backend = GeoPandasBackend(quiet=not verbose)

    with resolve_shape_files(path, layer_filter, allow_multiple, verbose) as shape_files:
        encodings = detect_encodings(shape_files)
        LOGGER.debug("Encodings for %s: %s", path, encodings)
        layers = [
            load_geometry(shp, enc, backend, verbose)
            for shp, enc in zip(shape_files, encodings)
        ]

    if kind is ShapeKind.SP:
        return union_spatial_frames([SpatialFrame.from_geodataframe(g) for g in layers], verbose)
    return union_collections(layers, verbose)


def read_boundary_sf(
    path: str | Path,
    layer_filter: LayerFilter = None,
    allow_multiple: bool = True,
    verbose: bool = True,
    backend: GeometryBackend | None = None,
) -> gpd.GeoDataFrame:
    """:func:`load_boundaries` returning a GeoDataFrame."""
    return load_boundaries(path, layer_filter, allow_multiple, verbose, ShapeKind.SF, backend)


def read_boundary_sp(
    path: str | Path,
    layer_filter: LayerFilter = None,
    allow_multiple: bool = True,
    verbose: bool = True,
    backend: GeometryBackend | None = None,
) -> SpatialFrame:
    """:func:`load_boundaries` returning a :class:`SpatialFrame`."""
    return load_boundaries(path, layer_filter, allow_multiple, verbose, ShapeKind.SP, backend)
