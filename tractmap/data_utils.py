"""
data_utils.py - Tract data loading and attribute join

Loads the tract attribute table and the tract TopoJSON, parses attribute
text into numbers and joins both sources on the tract key.

Absent values are NaN inside frames and None at scalar level. They never
raise: an unparseable cell simply renders with the fallback color.
"""

import traceback
from typing import List, Optional, Sequence

import geopandas as gpd
import numpy as np
import pandas as pd
from loguru import logger

from .attributes import attribute_ids
from .config_loader import Config

OUTPUT_CRS = "EPSG:4326"


def parse_series(series: pd.Series) -> pd.Series:
    """
    Cleans a pandas Series of attribute text to floats, handling commas and percent signs.

    Args:
        series: Raw attribute values (strings, None or NaN).

    Returns:
        Float Series with NaN wherever the value is missing, non-numeric or non-finite.
    """
    if pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
        vals = pd.to_numeric(series, errors="coerce").astype(float)
        return vals.replace([np.inf, -np.inf], np.nan)

    # Numbers mixed into text columns are taken as-is, only text goes through cleanup
    direct = pd.to_numeric(series, errors="coerce")
    s = (
        series.astype(str)
        .str.replace(",", "", regex=False)
        .str.replace("%", "", regex=False)
        .str.strip()
    )
    vals = direct.fillna(pd.to_numeric(s, errors="coerce")).astype(float)
    return vals.replace([np.inf, -np.inf], np.nan)


def parse_value(raw: object) -> Optional[float]:
    """Parse one raw attribute cell; None means the value is absent."""
    if raw is None:
        return None
    value = parse_series(pd.Series([raw], dtype=object)).iloc[0]
    if pd.isna(value):
        return None
    return float(value)


def prepare_records(
    records: pd.DataFrame, key_column: str, attributes: Optional[Sequence[str]] = None
) -> pd.DataFrame:
    """
    Build the numeric view of the tabular records.

    Rows without a key are dropped. When a key appears more than once the
    last row wins, so every key identifies exactly one record.

    Args:
        records: Attribute table as read from the CSV (text columns)
        key_column: Name of the tract key column
        attributes: Attribute ids to parse (defaults to every registered attribute)

    Returns:
        DataFrame with the key column (str) and one float column per attribute
    """
    attributes = list(attributes) if attributes is not None else attribute_ids()

    if key_column not in records.columns:
        raise ValueError(f"Key column '{key_column}' not found in records: {list(records.columns)}")

    keyed = records[records[key_column].notna()].reset_index(drop=True)
    dropped = len(records) - len(keyed)
    if dropped:
        logger.warning(f"  ⚠️ Dropped {dropped} records without a '{key_column}' value")

    numeric = pd.DataFrame({key_column: keyed[key_column].astype(str)})

    missing_cols = [attr for attr in attributes if attr not in keyed.columns]
    if missing_cols:
        logger.warning(f"  ⚠️ Attribute columns missing from records: {missing_cols}")

    for attr in attributes:
        if attr in keyed.columns:
            numeric[attr] = parse_series(keyed[attr])
        else:
            numeric[attr] = np.nan

    duplicated = numeric[key_column].duplicated(keep="last")
    if duplicated.any():
        dup_keys = sorted(set(numeric.loc[duplicated, key_column]))
        logger.warning(
            f"  ⚠️ {len(dup_keys)} duplicate keys in records, keeping the last row: {dup_keys[:5]}"
        )
        numeric = numeric[~duplicated]

    return numeric.reset_index(drop=True)


def join_attributes(
    features: gpd.GeoDataFrame,
    records: pd.DataFrame,
    key_column: str,
    attributes: Optional[Sequence[str]] = None,
) -> gpd.GeoDataFrame:
    """
    Join tabular tract attributes onto tract features by key.

    Args:
        features: Tract polygons with a key column
        records: Attribute table with the same key column (raw text values)
        key_column: Name of the shared key column
        attributes: Attribute ids to join (defaults to every registered attribute)

    Returns:
        New GeoDataFrame in the original feature order carrying one float column
        per attribute; features without a matching record get NaN everywhere.
    """
    attributes = list(attributes) if attributes is not None else attribute_ids()
    logger.info("🔗 Joining tract attributes to tract geometries...")

    if key_column not in features.columns:
        raise ValueError(f"Key column '{key_column}' not found in features: {list(features.columns)}")

    numeric = prepare_records(records, key_column, attributes)

    # Validate join key consistency
    feature_keys = set(features[key_column].astype(str))
    record_keys = set(numeric[key_column])
    common_keys = feature_keys & record_keys
    records_only = record_keys - feature_keys
    features_only = feature_keys - record_keys

    logger.debug(f"     Feature keys: {len(feature_keys):,}")
    logger.debug(f"     Record keys: {len(record_keys):,}")
    logger.debug(f"     Common keys: {len(common_keys):,}")

    if records_only:
        logger.warning(f"  ⚠️ {len(records_only):,} records without geometry (chart only)")
        logger.debug(f"     Example records-only: {sorted(records_only)[:5]}")

    if features_only:
        logger.warning(f"  ⚠️ {len(features_only):,} tracts without attribute data")
        logger.debug(f"     Example features-only: {sorted(features_only)[:5]}")

    # Existing attribute columns on the features are replaced, never merged
    base = features.drop(columns=[c for c in attributes if c in features.columns]).copy()
    base[key_column] = base[key_column].astype(str)

    joined = base.merge(numeric, on=key_column, how="left")
    joined.index = features.index

    logger.success(f"  ✅ Joined attributes for {len(common_keys):,} of {len(joined):,} tracts")
    return joined


def validate_and_reproject_to_wgs84(
    gdf: gpd.GeoDataFrame, source_description: str = "GeoDataFrame"
) -> gpd.GeoDataFrame:
    """
    Validates and reprojects a GeoDataFrame to WGS84 (EPSG:4326) if needed.

    Args:
        gdf: Input GeoDataFrame
        source_description: Description for logging

    Returns:
        GeoDataFrame in WGS84 coordinate system
    """
    logger.debug(f"  🗺️ Validating CRS of {source_description}: {gdf.crs}")

    if gdf.crs is None:
        logger.debug(f"  ❓ No CRS specified, assuming {OUTPUT_CRS}")
        return gdf.set_crs(OUTPUT_CRS)

    if gdf.crs.to_epsg() != 4326:
        logger.debug(f"  🔄 Reprojecting from {gdf.crs} to {OUTPUT_CRS}")
        return gdf.to_crs(OUTPUT_CRS)

    return gdf


def load_tract_attributes(config: Config) -> Optional[pd.DataFrame]:
    """
    Load the tract attribute table from CSV with robust validation.

    Args:
        config: Configuration instance

    Returns:
        DataFrame of raw text records or None if failed
    """
    csv_path = config.get_input_path("attributes_csv")
    key_column = config.get_column_name("key")
    logger.info(f"📊 Loading tract attributes from {csv_path}")

    if not csv_path.exists():
        logger.critical(f"❌ Attribute CSV not found: {csv_path}")
        return None

    try:
        # Keep everything as text so keys keep their leading zeros
        df = pd.read_csv(csv_path, dtype=str)

        if key_column not in df.columns:
            logger.critical(f"❌ Key column '{key_column}' missing from attribute CSV")
            logger.critical(f"   Available columns: {list(df.columns)}")
            return None

        missing_cols = [attr for attr in attribute_ids() if attr not in df.columns]
        if missing_cols:
            logger.warning(f"  ⚠️ Missing attribute columns (treated as absent): {missing_cols}")

        logger.success(f"  ✅ Loaded {len(df):,} tract records")
        return df

    except Exception as e:
        logger.critical(f"❌ Error loading tract attributes: {e}")
        logger.trace("Detailed attribute loading error:")
        logger.trace(traceback.format_exc())
        return None


def load_tract_geometries(config: Config) -> Optional[gpd.GeoDataFrame]:
    """
    Load tract polygons from the named TopoJSON object.

    Args:
        config: Configuration instance

    Returns:
        GeoDataFrame with one polygon per tract or None if failed
    """
    topo_path = config.get_input_path("tracts_topojson")
    object_name = config.get("input_files.tracts_topojson_object")
    key_column = config.get_column_name("key")
    logger.info(f"🗺️ Loading tract geometries from {topo_path} (object '{object_name}')")

    if not topo_path.exists():
        logger.critical(f"❌ Tract TopoJSON not found: {topo_path}")
        return None

    try:
        # Each TopoJSON object is exposed as its own layer
        gdf = gpd.read_file(topo_path, layer=object_name)

        if key_column not in gdf.columns:
            logger.critical(f"❌ Key field '{key_column}' missing from tract features")
            logger.critical(f"   Available columns: {list(gdf.columns)}")
            return None

        gdf = validate_and_reproject_to_wgs84(gdf, "tract geometries")

        invalid_geom = gdf.geometry.isna() | (~gdf.geometry.is_valid)
        invalid_count = int(invalid_geom.sum())
        if invalid_count > 0:
            logger.warning(f"  ⚠️ Found {invalid_count} invalid geometries, fixing...")
            gdf.geometry = gdf.geometry.buffer(0)

        logger.success(f"  ✅ Loaded {len(gdf):,} tract polygons")
        return gdf

    except Exception as e:
        logger.critical(f"❌ Error loading tract geometries: {e}")
        logger.trace("Detailed geometry loading error:")
        logger.trace(traceback.format_exc())
        return None


def attribute_values(frame: pd.DataFrame, attribute: str) -> List[Optional[float]]:
    """Values of one attribute column with NaN mapped to None."""
    return [None if pd.isna(v) else float(v) for v in frame[attribute]]
