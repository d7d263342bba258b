"""Pytest fixtures for tractmap tests.

Provides small in-memory tract tables and polygons, plus an on-disk project
(config.yaml, attribute CSV and TopoJSON) for loader and launcher tests.
"""

import json
import sys

import geopandas as gpd
import pandas as pd
import pytest
import yaml
from loguru import logger
from shapely.geometry import box

from tractmap.config_loader import Config

KEY = "TRACTCE"
TOPOJSON_OBJECT = "vt_007_tract_2017"

RAW_ROWS = [
    {"TRACTCE": "000100", "race": "80", "age": "12.5", "education": "40", "income": "5.1", "healthcare": "70", "native": "55"},
    {"TRACTCE": "000200", "race": "60", "age": "20", "education": "35", "income": "", "healthcare": "65", "native": "50"},
    {"TRACTCE": "000300", "race": "95", "age": "18", "education": "abc", "income": "2", "healthcare": "80", "native": "60"},
    {"TRACTCE": "000400", "race": "90.5", "age": "9", "education": "62", "income": "11", "healthcare": "75", "native": "40"},
]


def _square(index: int):
    west = -73.3 + index * 0.05
    return box(west, 44.40, west + 0.05, 44.45)


@pytest.fixture(autouse=True)
def quiet_logger():
    """Keep loguru on a plain stderr sink between tests (the launcher replaces sinks)."""
    yield
    logger.remove()
    logger.add(sys.stderr, level="WARNING")


@pytest.fixture
def raw_records():
    """Attribute table as read from the CSV: every column is text."""
    return pd.DataFrame(RAW_ROWS, dtype=str)


@pytest.fixture
def tract_features():
    """One square polygon per tract key."""
    keys = [row["TRACTCE"] for row in RAW_ROWS]
    return gpd.GeoDataFrame(
        {"TRACTCE": keys, "NAME": [f"Tract {k}" for k in keys]},
        geometry=[_square(i) for i in range(len(keys))],
        crs="EPSG:4326",
    )


@pytest.fixture
def config(tmp_path):
    """Config backed by a minimal config.yaml (all other settings from defaults)."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump({"project_name": "Test tracts"}))
    return Config(config_path, project_root_override=tmp_path)


def write_topojson(path, rows):
    """Write a non-quantized topology with one polygon object per row."""
    arcs = []
    geometries = []
    for index, row in enumerate(rows):
        square = _square(index)
        arcs.append([list(coord) for coord in square.exterior.coords])
        geometries.append(
            {"type": "Polygon", "arcs": [[index]], "properties": {KEY: row[KEY]}}
        )

    topology = {
        "type": "Topology",
        "objects": {TOPOJSON_OBJECT: {"type": "GeometryCollection", "geometries": geometries}},
        "arcs": arcs,
    }
    path.write_text(json.dumps(topology))


@pytest.fixture
def project_dir(tmp_path):
    """A complete on-disk project: config.yaml, attribute CSV and tract TopoJSON."""
    data_dir = tmp_path / "assets" / "data"
    data_dir.mkdir(parents=True)

    pd.DataFrame(RAW_ROWS, dtype=str).to_csv(data_dir / "tracts.csv", index=False)
    write_topojson(data_dir / "tracts.topojson", RAW_ROWS)

    settings = {
        "project_name": "Test tracts",
        "directories": {"data": "assets/data", "html": "html"},
        "input_files": {
            "attributes_csv": "assets/data/tracts.csv",
            "tracts_topojson": "assets/data/tracts.topojson",
            "tracts_topojson_object": TOPOJSON_OBJECT,
        },
        "columns": {"key": KEY},
    }
    (tmp_path / "config.yaml").write_text(yaml.safe_dump(settings))
    return tmp_path


@pytest.fixture
def project_config(project_dir):
    return Config(project_dir / "config.yaml", project_root_override=project_dir)
