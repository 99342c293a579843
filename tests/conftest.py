from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Callable, Iterable, Mapping, Sequence

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box

CRS = "EPSG:4326"


def squares(n: int) -> list:
    """Unit squares laid side by side along the x axis."""
    return [box(i, 0, i + 1, 1) for i in range(n)]


def make_gdf(columns: Mapping[str, Sequence], crs: str | None = CRS) -> gpd.GeoDataFrame:
    n = len(next(iter(columns.values()))) if columns else 0
    return gpd.GeoDataFrame(dict(columns), geometry=squares(n), crs=crs)


def shapefile_set(shp: Path) -> list[Path]:
    """Every file on disk that belongs to the shapefile *shp*."""
    return sorted(p for p in shp.parent.iterdir() if p.stem == shp.stem)


def zip_files(zip_path: Path, files: Iterable[Path], prefix: str = "") -> Path:
    with zipfile.ZipFile(zip_path, "w") as zf:
        for f in files:
            zf.write(f, arcname=f"{prefix}{f.name}")
    return zip_path


class FakeBackend:
    """Records what it was asked to read and serves canned frames."""

    def __init__(self, frames: Mapping[str, gpd.GeoDataFrame] | None = None, error: Exception | None = None):
        self.frames = dict(frames or {})
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def read(self, path, encoding: str) -> gpd.GeoDataFrame:
        self.calls.append((str(path), encoding))
        if self.error is not None:
            raise self.error
        return self.frames.get(Path(path).stem, make_gdf({"ID": ["1"]}))


@pytest.fixture
def make_layer() -> Callable[..., Path]:
    """Write a real shapefile with unit-square geometry and return the .shp path.

    Any ``.cpg`` the writer produces is removed unless *cpg* is given, in which
    case it is written with that text.
    """

    def _make(
        folder: Path,
        name: str,
        columns: Mapping[str, Sequence],
        cpg: str | None = None,
    ) -> Path:
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / f"{name}.shp"
        make_gdf(columns).to_file(path)
        cpg_path = folder / f"{name}.cpg"
        cpg_path.unlink(missing_ok=True)
        if cpg is not None:
            cpg_path.write_text(cpg, encoding="ascii")
        return path

    return _make


@pytest.fixture
def counties_shp(tmp_path, make_layer) -> Path:
    return make_layer(
        tmp_path / "src",
        "counties",
        {"GEOID": ["001", "003", "005"], "NAME": ["Adams", "Boone", "Clay"], "AREA": [1.5, 2.0, 3.25]},
    )


@pytest.fixture
def tracts_shp(tmp_path, make_layer) -> Path:
    return make_layer(
        tmp_path / "src",
        "tracts",
        {"GEOID": ["001", "007"], "NAME": ["North", "South"]},
    )


@pytest.fixture
def extract_table() -> pd.DataFrame:
    return pd.DataFrame({"GEOID": [1, 3, 9], "POP": [100, 250, 75]})
