from __future__ import annotations

import logging

import geopandas as gpd
import pandas as pd
import pytest
from conftest import make_gdf

from boundary_tools.join_tools.identifier_reconciler import COLUMN_METADATA_ATTR
from boundary_tools.join_tools.spatial_joiner import (
    JoinProblems,
    join_problems,
    normalize_key_spec,
    spatial_join,
)
from boundary_tools.shape_tools.shape_kinds import ShapeKind, SpatialFrame
from boundary_tools.utils.errors import DuplicateKeys, KeyTypeMismatch, UnknownJoinKey


@pytest.fixture
def shapes() -> gpd.GeoDataFrame:
    return make_gdf({"GEOID": [1, 2], "NAME": ["Adams", "Boone"]})


@pytest.fixture
def table() -> pd.DataFrame:
    return pd.DataFrame({"GEOID": [2, 3], "POP": [250, 75]})


# -----------------------------------------------------------------------------
# key specs
# -----------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("by", "expected"),
    [
        ("GISJOIN", [("GISJOIN", "GISJOIN")]),
        (["STATEFP", "COUNTYFP"], [("STATEFP", "STATEFP"), ("COUNTYFP", "COUNTYFP")]),
        ({"GEOID10": "GISJOIN"}, [("GEOID10", "GISJOIN")]),
        ([("GEOID10", "GISJOIN"), "YEAR"], [("GEOID10", "GISJOIN"), ("YEAR", "YEAR")]),
    ],
)
def test_normalize_key_spec(by, expected) -> None:
    assert normalize_key_spec(by) == expected


def test_normalize_key_spec_rejects_bad_input() -> None:
    with pytest.raises(ValueError):
        normalize_key_spec([])
    with pytest.raises(TypeError):
        normalize_key_spec([("a", "b", "c")])


# -----------------------------------------------------------------------------
# directions
# -----------------------------------------------------------------------------


def test_inner_join(shapes, table) -> None:
    result = spatial_join(table, shapes, "GEOID", direction="inner")

    assert isinstance(result.data, gpd.GeoDataFrame)
    assert result.data["GEOID"].tolist() == [2]
    assert result.data["NAME"].tolist() == ["Boone"]
    assert result.data["POP"].tolist() == [250]
    assert result.data.crs == shapes.crs
    assert result.kind is ShapeKind.SF


def test_full_join_reports_unmatched_without_failing(shapes, table, caplog) -> None:
    """{1,2} ⟗ {2,3}: three rows, one stray on each side."""
    with caplog.at_level(logging.WARNING):
        result = spatial_join(table, shapes, "GEOID")

    assert sorted(result.data["GEOID"].tolist()) == [1, 2, 3]

    problems = join_problems(result)
    assert isinstance(problems, JoinProblems)
    assert problems.shape["GEOID"].tolist() == [1]
    assert problems.data["GEOID"].tolist() == [3]

    assert "1 observation in the shape file and 1 observation in the data" in caplog.text
    assert "join_problems" in caplog.text


def test_left_keeps_every_data_row(shapes, table) -> None:
    result = spatial_join(table, shapes, "GEOID", direction="left")

    out = result.data.sort_values("GEOID")
    assert out["GEOID"].tolist() == [2, 3]
    assert out["POP"].tolist() == [250, 75]
    assert out.geometry.isna().tolist() == [False, True]


def test_right_keeps_every_shape_row(shapes, table) -> None:
    result = spatial_join(table, shapes, "GEOID", direction="right")

    out = result.data.sort_values("GEOID")
    assert out["GEOID"].tolist() == [1, 2]
    assert out["NAME"].tolist() == ["Adams", "Boone"]
    assert out["POP"].isna().tolist() == [True, False]


def test_unknown_direction(shapes, table) -> None:
    with pytest.raises(ValueError):
        spatial_join(table, shapes, "GEOID", direction="sideways")


# -----------------------------------------------------------------------------
# columns
# -----------------------------------------------------------------------------


def test_clashing_columns_get_shape_suffix(shapes) -> None:
    table = pd.DataFrame({"GEOID": [1, 2], "NAME": ["adams co", "boone co"]})

    result = spatial_join(table, shapes, "GEOID", direction="inner")

    assert result.data["NAME"].tolist() == ["adams co", "boone co"]
    assert result.data["NAME_SHAPE"].tolist() == ["Adams", "Boone"]


def test_custom_suffix_pair(shapes) -> None:
    table = pd.DataFrame({"GEOID": [1, 2], "NAME": ["a", "b"]})

    result = spatial_join(table, shapes, "GEOID", suffix_pair=("_DATA", "_GEO"))

    assert {"NAME_DATA", "NAME_GEO"} <= set(result.data.columns)
    assert "NAME" not in result.data.columns


def test_differently_named_keys() -> None:
    shapes = make_gdf({"GEOID10": ["G01", "G02"]})
    table = pd.DataFrame({"GISJOIN": ["G01", "G02"], "POP": [1, 2]})

    result = spatial_join(table, shapes, {"GEOID10": "GISJOIN"})

    assert "GEOID10" not in result.data.columns
    assert result.data.sort_values("GISJOIN")["POP"].tolist() == [1, 2]
    assert result.problems is None


def test_text_shape_keys_join_numeric_data(counties_shp, extract_table) -> None:
    """Zero-padded text IDs on the boundaries still meet integer IDs in the table."""
    shapes = gpd.read_file(counties_shp)

    result = spatial_join(extract_table, shapes, "GEOID", direction="inner")

    out = result.data.sort_values("GEOID")
    assert out["GEOID"].tolist() == [1, 3]
    assert out["POP"].tolist() == [100, 250]
    assert shapes["GEOID"].tolist() == ["001", "003", "005"]


def test_column_metadata_carried_into_result(shapes, table) -> None:
    table.attrs[COLUMN_METADATA_ATTR] = {"POP": {"label": "Total persons"}}

    result = spatial_join(table, shapes, "GEOID")

    assert result.data.attrs[COLUMN_METADATA_ATTR]["POP"] == {"label": "Total persons"}


# -----------------------------------------------------------------------------
# errors
# -----------------------------------------------------------------------------


def test_unknown_key_lists_both_sides(shapes, table) -> None:
    with pytest.raises(UnknownJoinKey) as excinfo:
        spatial_join(table, shapes, {"GISJOIN": "GISJOIN10"})

    assert excinfo.value.missing_shape == ["GISJOIN"]
    assert excinfo.value.missing_data == ["GISJOIN10"]
    assert str(excinfo.value).startswith("Variables GISJOIN are not in shape data.")


def test_unconvertible_key_types(shapes) -> None:
    table = pd.DataFrame({"GEOID": ["one", "two"], "POP": [1, 2]})
    with pytest.raises(KeyTypeMismatch):
        spatial_join(table, shapes, "GEOID")


def test_check_unique_rejects_repeated_keys(shapes) -> None:
    table = pd.DataFrame({"GEOID": [1, 1, 2, 2], "POP": [1, 2, 3, 4]})

    with pytest.raises(DuplicateKeys) as excinfo:
        spatial_join(table, shapes, "GEOID", check_unique=True)
    assert excinfo.value.label == "data"

    # without the check the join simply multiplies rows
    assert len(spatial_join(table, shapes, "GEOID").data) == 4


# -----------------------------------------------------------------------------
# reporting
# -----------------------------------------------------------------------------


def test_everything_matched_has_no_problems(shapes, caplog) -> None:
    table = pd.DataFrame({"GEOID": [1, 2], "POP": [1, 2]})
    with caplog.at_level(logging.WARNING):
        result = spatial_join(table, shapes, "GEOID")
    assert result.problems is None
    assert "not matched" not in caplog.text


def test_quiet_join_skips_reporting(shapes, table, caplog) -> None:
    with caplog.at_level(logging.WARNING):
        result = spatial_join(table, shapes, "GEOID", verbose=False)
    assert result.problems is None
    assert caplog.text == ""


def test_plural_wording(shapes, caplog) -> None:
    table = pd.DataFrame({"GEOID": [7, 8], "POP": [1, 2]})
    with caplog.at_level(logging.WARNING):
        spatial_join(table, shapes, "GEOID")
    assert "2 observations in the shape file and 2 observations in the data" in caplog.text


# -----------------------------------------------------------------------------
# legacy spatial frames
# -----------------------------------------------------------------------------


def test_spatial_frame_join(shapes, table) -> None:
    frame = SpatialFrame.from_geodataframe(shapes)

    result = spatial_join(table, frame, "GEOID", direction="right", kind="sp")

    assert result.kind is ShapeKind.SP
    assert isinstance(result.data, SpatialFrame)
    assert len(result.data.geometry) == len(result.data.data) == 2
    assert result.data.columns == ["GEOID", "NAME", "POP"]
    assert result.problems is not None
    assert result.problems.shape["GEOID"].tolist() == [1]


def test_kind_must_match_shape_data(shapes, table) -> None:
    frame = SpatialFrame.from_geodataframe(shapes)

    with pytest.raises(TypeError) as excinfo:
        spatial_join(table, frame, "GEOID")
    assert "GeoDataFrame" in str(excinfo.value)
    assert "SpatialFrame" in str(excinfo.value)

    with pytest.raises(TypeError) as excinfo:
        spatial_join(table, shapes, "GEOID", kind="sp")
    assert "kind='sp'" in str(excinfo.value)
