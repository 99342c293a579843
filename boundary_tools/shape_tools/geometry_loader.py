"""Read one shapefile into a GeoDataFrame through a pluggable backend."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import geopandas as gpd

from boundary_tools.utils.errors import GeometryLoadFailure
from boundary_tools.utils.logging_helper import progress_level

LOGGER = logging.getLogger(__name__)


class GeometryBackend(Protocol):
    """Anything that turns a shapefile path plus text encoding into a GeoDataFrame."""

    def read(self, path: str | Path, encoding: str) -> gpd.GeoDataFrame:
        ...


class GeoPandasBackend:
    """Default backend: :func:`geopandas.read_file` with an ``encoding`` hint.

    Args:
        quiet: Silence the per-file "Reading ..." message.
    """

    def __init__(self, quiet: bool = False) -> None:
        self.quiet = quiet

    def read(self, path: str | Path, encoding: str) -> gpd.GeoDataFrame:
        if not self.quiet:
            LOGGER.info("Reading %s (encoding=%s)", path, encoding)
        return gpd.read_file(path, encoding=encoding)


def load_geometry(
    path: str | Path,
    encoding: str,
    backend: GeometryBackend,
    verbose: bool = True,
) -> gpd.GeoDataFrame:
    """Load *path* with *backend*.

    Raises:
    ------
    GeometryLoadFailure
        Wraps any backend error (corrupt file, missing companion) with *path*.
    """
    try:
        gdf = backend.read(path, encoding)
    except Exception as exc:  # noqa: BLE001
        raise GeometryLoadFailure(str(path), exc) from exc

    LOGGER.log(progress_level(verbose), "Read %d feature(s) from %s", len(gdf), Path(path).name)
    return gdf
