"""The two in-memory forms boundary data can take.

``ShapeKind.SF``
    Simple features: one :class:`geopandas.GeoDataFrame`, geometry stored as a
    column next to the attributes.
``ShapeKind.SP``
    Legacy spatial frame: polygons in a :class:`geopandas.GeoSeries` and the
    attributes in a separate :class:`pandas.DataFrame`, aligned by position.

Callers choose the form with an explicit ``kind=`` argument.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import geopandas as gpd
import pandas as pd


class ShapeKind(str, Enum):
    SF = "sf"
    SP = "sp"


@dataclass(frozen=True)
class SpatialFrame:
    """Polygons plus a position-aligned attribute table."""

    geometry: gpd.GeoSeries
    data: pd.DataFrame

    def __post_init__(self) -> None:
        if len(self.geometry) != len(self.data):
            raise ValueError(
                f"Geometry has {len(self.geometry)} rows but data has {len(self.data)}"
            )

    def __len__(self) -> int:
        return len(self.data)

    @property
    def columns(self) -> list[str]:
        return list(self.data.columns)

    @property
    def crs(self):
        return self.geometry.crs

    @classmethod
    def from_geodataframe(cls, gdf: gpd.GeoDataFrame) -> "SpatialFrame":
        geom_name = gdf.geometry.name
        data = pd.DataFrame(gdf.drop(columns=geom_name)).reset_index(drop=True)
        data.attrs = dict(gdf.attrs)
        return cls(geometry=gdf.geometry.reset_index(drop=True), data=data)

    def to_geodataframe(self) -> gpd.GeoDataFrame:
        gdf = gpd.GeoDataFrame(
            self.data.reset_index(drop=True),
            geometry=self.geometry.reset_index(drop=True),
            crs=self.geometry.crs,
        )
        gdf.attrs = dict(self.data.attrs)
        return gdf
