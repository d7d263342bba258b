"""
Coordinated session: load → join → classify → paint, then react to events.

The session owns the joined tracts, the numeric records, the selection state
and both facades. Every event runs to completion synchronously: an attribute
change re-classifies and repaints both panels, a hover emphasizes every
element of the hovered tract.
"""

from typing import Optional, Tuple

import geopandas as gpd
import pandas as pd
from loguru import logger

from .attributes import attribute_ids, get_attribute
from .classification import ClassBreaks, compute_attribute_breaks
from .config_loader import Config
from .data_utils import join_attributes, load_tract_attributes, load_tract_geometries, prepare_records
from .renderers import (
    ChartFacade,
    ChartLayout,
    MapFacade,
    PaintSettings,
    StyleRegistry,
    Tooltip,
)
from .selection import SelectionState, TooltipSettings, place_tooltip


class InitializationError(RuntimeError):
    """Raised when the viewer cannot be initialized (no partial UI is built)."""


class CoordinatedSession:
    """Map and chart kept in sync under one SelectionState."""

    def __init__(
        self,
        joined: gpd.GeoDataFrame,
        records: pd.DataFrame,
        config: Config,
        attribute: Optional[str] = None,
    ):
        self.config = config
        self.key_column = config.get_column_name("key")
        self.joined = joined
        self.records = records
        self.class_count = int(config.get_visualization_setting("class_count"))

        self.settings = PaintSettings.from_config(config)
        self.tooltip_settings = TooltipSettings.from_config(config)
        self.registry = StyleRegistry(self.settings.highlight_style)
        self.map = MapFacade(joined, self.key_column, self.registry, self.settings)
        self.chart = ChartFacade(
            records, self.key_column, self.registry, self.settings, ChartLayout.from_config(config)
        )

        self.selection = SelectionState(attribute or attribute_ids()[0])
        self.breaks = ClassBreaks(())
        self.tooltip: Optional[Tooltip] = None

        self.selection.subscribe(self._repaint)
        self._repaint(self.selection.expressed_attribute)

    @property
    def expressed_attribute(self) -> str:
        return self.selection.expressed_attribute

    def _repaint(self, attribute: str) -> None:
        logger.info(f"🎨 Painting '{attribute}' ({get_attribute(attribute).chart_label})")
        self.breaks = compute_attribute_breaks(self.records, attribute, k=self.class_count)
        self.map.recolor(attribute, self.breaks)
        self.chart.update(attribute, self.breaks)

        # A visible tooltip follows the new attribute
        if self.tooltip is not None:
            self.tooltip = self.tooltip_for(self.tooltip.key)

    def select_attribute(self, attribute: str) -> bool:
        """Dropdown change handler; raises InvalidAttributeError for unknown ids."""
        return self.selection.set_expressed_attribute(attribute)

    def hover(self, key: str) -> Tooltip:
        """Pointer entered any element of a tract, on either panel."""
        previous = self.selection.highlighted_key
        if previous is not None and previous != key:
            self.unhover(previous)

        self.selection.highlight(key)
        self.registry.highlight(key)
        self.tooltip = self.tooltip_for(key)
        return self.tooltip

    def unhover(self, key: str) -> None:
        """Pointer left an element of a tract."""
        self.registry.dehighlight(key)
        self.selection.dehighlight(key)
        if self.tooltip is not None and self.tooltip.key == key:
            self.tooltip = None

    def move_pointer(
        self, pointer_x: float, pointer_y: float, label_width: float, viewport_width: float
    ) -> Optional[Tuple[float, float]]:
        """Tooltip position for the pointer, or None when no tooltip is shown."""
        if self.tooltip is None:
            return None
        return place_tooltip(
            pointer_x, pointer_y, label_width, viewport_width, self.tooltip_settings
        )

    def tooltip_for(self, key: str) -> Tooltip:
        attribute = self.expressed_attribute
        bar = self.chart.bar_for(key)
        value = bar.value if bar is not None else self.map.value_for(key)
        return Tooltip(key=key, value=value, label=get_attribute(attribute).short_label)


def build_session(config: Config, attribute: Optional[str] = None) -> CoordinatedSession:
    """
    Load both sources, join them and paint the initial view.

    Raises:
        InitializationError: if either source cannot be loaded
        InvalidAttributeError: if the requested start-up attribute is unknown
    """
    logger.info("🗺️ Initializing tract viewer...")

    records = load_tract_attributes(config)
    features = load_tract_geometries(config)

    if records is None or features is None:
        failed = [
            name
            for name, loaded in (("tract attributes", records), ("tract geometries", features))
            if loaded is None
        ]
        raise InitializationError(f"Could not load {' and '.join(failed)}")

    key_column = config.get_column_name("key")
    joined = join_attributes(features, records, key_column)
    numeric_records = prepare_records(records, key_column)

    session = CoordinatedSession(joined, numeric_records, config, attribute)
    logger.success(f"✅ Viewer ready with {len(joined):,} tracts and {len(numeric_records):,} bars")
    return session
