"""
Map and chart facades for the coordinated view.

Both facades keep one visual element per tract and register it with a shared
StyleRegistry under the tract key, so a hover on either panel can emphasize
"every element for tract X" regardless of bar order. Default stroke styles
live in the registry, next to the elements, and are restored from there.
"""

import io
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import folium
import geopandas as gpd
import matplotlib

matplotlib.use("Agg")  # Pages are rendered headless

import matplotlib.pyplot as plt
import pandas as pd
from loguru import logger
from matplotlib.patches import Rectangle

from .attributes import get_attribute
from .classification import ClassBreaks
from .config_loader import Config


@dataclass(frozen=True)
class StrokeStyle:
    stroke: str
    stroke_width: float

    @classmethod
    def from_config(cls, config: Config, kind: str) -> "StrokeStyle":
        style = config.get_style(kind)
        return cls(stroke=str(style["stroke"]), stroke_width=float(style["stroke_width"]))


@dataclass
class VisualElement:
    """A drawable element addressed by tract key."""

    key: str
    kind: str
    fill: str = "#fff"
    stroke: str = "none"
    stroke_width: float = 0.0
    value: Optional[float] = None

    @property
    def style(self) -> StrokeStyle:
        return StrokeStyle(self.stroke, self.stroke_width)

    def apply_style(self, style: StrokeStyle) -> None:
        self.stroke = style.stroke
        self.stroke_width = style.stroke_width


@dataclass
class BarElement(VisualElement):
    """A bar of the ranked chart, in chart pixel coordinates."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    delay_ms: int = 0
    duration_ms: int = 0


@dataclass(frozen=True)
class Tooltip:
    """Content of the floating label for one tract."""

    key: str
    value: Optional[float]
    label: str

    @property
    def value_text(self) -> str:
        return format_value(self.value)

    def html(self) -> str:
        return (
            f"<h1>{self.value_text}</h1><br>{self.label}"
            f'<div class="labelname"><small>Tract code: {self.key}</small></div>'
        )


def format_value(value: Optional[float]) -> str:
    if value is None:
        return "No data"
    return f"{value:g}"


class StyleRegistry:
    """
    Visual elements grouped by tract key, with their default stroke styles.

    The default style of each element is recorded per key and element kind
    when the element is registered; dehighlight restores from that record.
    """

    def __init__(self, highlight_style: StrokeStyle):
        self.highlight_style = highlight_style
        self._elements: Dict[str, List[VisualElement]] = defaultdict(list)
        self._defaults: Dict[str, Dict[str, StrokeStyle]] = defaultdict(dict)

    def register(self, element: VisualElement, default_style: StrokeStyle) -> None:
        element.apply_style(default_style)
        self._elements[element.key].append(element)
        self._defaults[element.key][element.kind] = default_style

    def elements_for(self, key: str) -> List[VisualElement]:
        return list(self._elements.get(key, []))

    def default_style(self, key: str, kind: str) -> StrokeStyle:
        return self._defaults[key][kind]

    def highlight(self, key: str) -> List[VisualElement]:
        """Apply the highlight stroke to every element of a tract."""
        elements = self.elements_for(key)
        for element in elements:
            element.apply_style(self.highlight_style)
        return elements

    def dehighlight(self, key: str) -> List[VisualElement]:
        """Restore every element of a tract to its recorded default stroke."""
        elements = self.elements_for(key)
        for element in elements:
            element.apply_style(self.default_style(key, element.kind))
        return elements

    def keys(self) -> List[str]:
        return list(self._elements.keys())


@dataclass(frozen=True)
class ChartLayout:
    """Fixed chart frame; bar heights map the value domain onto the inner height."""

    width: float = 735
    height: float = 700
    left_padding: float = 25
    right_padding: float = 2
    top_bottom_padding: float = 50
    gutter: float = 1
    domain: Tuple[float, float] = (0, 100)

    @classmethod
    def from_config(cls, config: Config) -> "ChartLayout":
        domain = config.get_visualization_setting("chart_domain")
        return cls(
            width=config.get_visualization_setting("chart_width"),
            height=config.get_visualization_setting("chart_height"),
            left_padding=config.get_visualization_setting("chart_left_padding"),
            right_padding=config.get_visualization_setting("chart_right_padding"),
            top_bottom_padding=config.get_visualization_setting("chart_top_bottom_padding"),
            gutter=config.get_visualization_setting("chart_bar_gutter"),
            domain=(float(domain[0]), float(domain[1])),
        )

    @property
    def inner_width(self) -> float:
        return self.width - self.left_padding - self.right_padding

    @property
    def inner_height(self) -> float:
        return self.height - self.top_bottom_padding * 2

    def y_scale(self, value: float) -> float:
        """Linear scale from the value domain onto [inner_height, 0]."""
        low, high = self.domain
        return self.inner_height - (value - low) * self.inner_height / (high - low)

    def bar_x(self, rank: int, count: int) -> float:
        return rank * (self.inner_width / count) + self.left_padding

    def bar_width(self, count: int) -> float:
        return self.inner_width / count - self.gutter

    def bar_height(self, value: Optional[float]) -> float:
        if value is None:
            return 0.0
        return self.inner_height - self.y_scale(value)

    def bar_y(self, value: Optional[float]) -> float:
        if value is None:
            return self.inner_height + self.top_bottom_padding
        return self.y_scale(value) + self.top_bottom_padding


@dataclass(frozen=True)
class PaintSettings:
    palette: Tuple[str, ...]
    fallback_color: str
    tract_style: StrokeStyle
    bar_style: StrokeStyle
    highlight_style: StrokeStyle
    transition_duration_ms: int = 500
    transition_stagger_ms: int = 20

    @classmethod
    def from_config(cls, config: Config) -> "PaintSettings":
        return cls(
            palette=tuple(config.get_visualization_setting("palette")),
            fallback_color=config.get_visualization_setting("fallback_color"),
            tract_style=StrokeStyle.from_config(config, "tract"),
            bar_style=StrokeStyle.from_config(config, "bar"),
            highlight_style=StrokeStyle.from_config(config, "highlight"),
            transition_duration_ms=int(config.get_interaction_setting("transition_duration_ms")),
            transition_stagger_ms=int(config.get_interaction_setting("transition_stagger_ms")),
        )


def _optional_float(value: Any) -> Optional[float]:
    return None if pd.isna(value) else float(value)


class MapFacade:
    """Choropleth panel: one fill-colored, hoverable polygon per tract."""

    def __init__(
        self,
        joined: gpd.GeoDataFrame,
        key_column: str,
        registry: StyleRegistry,
        settings: PaintSettings,
    ):
        self.joined = joined
        self.key_column = key_column
        self.registry = registry
        self.settings = settings
        self.elements: List[VisualElement] = []

        for key in joined[key_column].astype(str):
            element = VisualElement(key=key, kind="tract", fill=settings.fallback_color)
            registry.register(element, settings.tract_style)
            self.elements.append(element)

        self.attribute: Optional[str] = None
        self.layer_name: Optional[str] = None

    def recolor(self, attribute: str, breaks: ClassBreaks) -> None:
        """Fill every tract by the class of its value of the expressed attribute."""
        values = (
            self.joined[attribute]
            if attribute in self.joined.columns
            else pd.Series([None] * len(self.joined), index=self.joined.index)
        )
        for element, value in zip(self.elements, values):
            element.value = _optional_float(value)
            element.fill = breaks.color_for(
                element.value, self.settings.palette, self.settings.fallback_color
            )
        self.attribute = attribute

        missing = sum(1 for element in self.elements if element.value is None)
        if missing:
            logger.debug(f"     {missing} tracts without '{attribute}' use the fallback color")

    def fill_for(self, key: str) -> Optional[str]:
        for element in self.elements:
            if element.key == key:
                return element.fill
        return None

    def value_for(self, key: str) -> Optional[float]:
        for element in self.elements:
            if element.key == key:
                return element.value
        return None

    def to_geojson(self) -> Dict[str, Any]:
        """GeoJSON of the tracts with the current paint as properties."""
        export = self.joined[[self.key_column, "geometry"]].copy()
        export[self.key_column] = export[self.key_column].astype(str)
        export["_fill"] = [element.fill for element in self.elements]
        export["_stroke"] = [element.stroke for element in self.elements]
        export["_stroke_width"] = [element.stroke_width for element in self.elements]
        export["_value_text"] = [format_value(element.value) for element in self.elements]
        return export.__geo_interface__

    def to_folium(
        self,
        title: str,
        center: Sequence[float],
        zoom: int,
        tiles: str,
        fill_opacity: float = 0.85,
    ) -> folium.Map:
        """Build the Leaflet map for the currently painted attribute."""
        if self.attribute is None:
            raise ValueError("Map has not been painted yet")

        meta = get_attribute(self.attribute)

        # Center on the tracts when there is any geometry to center on
        geometry = self.joined.geometry
        drawable = geometry.notna() & ~geometry.is_empty
        if drawable.any():
            bounds = self.joined[drawable].total_bounds
            center = [(bounds[1] + bounds[3]) / 2, (bounds[0] + bounds[2]) / 2]
        logger.debug(f"     Map center: {center[0]:.4f}, {center[1]:.4f}")

        m = folium.Map(location=list(center), zoom_start=zoom, tiles=tiles)

        highlight = self.settings.highlight_style

        layer = folium.GeoJson(
            data=self.to_geojson(),
            name=meta.chart_label,
            style_function=lambda feature: {
                "fillColor": feature["properties"]["_fill"],
                "color": feature["properties"]["_stroke"],
                "weight": feature["properties"]["_stroke_width"],
                "fillOpacity": fill_opacity,
            },
            highlight_function=lambda feature: {
                "color": highlight.stroke,
                "weight": highlight.stroke_width,
            },
            tooltip=folium.GeoJsonTooltip(
                fields=["_value_text", self.key_column],
                aliases=[f"{meta.short_label}:", "Tract code:"],
                localize=True,
                sticky=True,
                labels=True,
            ),
        ).add_to(m)
        self.layer_name = layer.get_name()

        title_html = f"""
        <h3 class="mapTitle" style="position: fixed; bottom: 10px; left: 20px; z-index: 9999;
            font-size: 16px; color: #333333;">{title}</h3>
        """
        m.get_root().html.add_child(folium.Element(title_html))
        return m


class ChartFacade:
    """Ranked bar panel: one bar per tract record, sorted by the expressed attribute."""

    def __init__(
        self,
        records: pd.DataFrame,
        key_column: str,
        registry: StyleRegistry,
        settings: PaintSettings,
        layout: ChartLayout = ChartLayout(),
    ):
        self.records = records
        self.key_column = key_column
        self.registry = registry
        self.settings = settings
        self.layout = layout
        self.title = ""
        self.bars: List[BarElement] = []

        for key in records[key_column].astype(str):
            bar = BarElement(key=key, kind="bar", fill=settings.fallback_color)
            registry.register(bar, settings.bar_style)
            self.bars.append(bar)

    def update(self, attribute: str, breaks: ClassBreaks) -> None:
        """Re-sort, re-position, resize and recolor the bars for an attribute."""
        values: Dict[str, Optional[float]] = {}
        if attribute in self.records.columns:
            for key, value in zip(self.records[self.key_column].astype(str), self.records[attribute]):
                values[key] = _optional_float(value)

        for bar in self.bars:
            bar.value = values.get(bar.key)

        self.bars = sort_bars(self.bars)

        count = len(self.bars)
        for rank, bar in enumerate(self.bars):
            bar.x = self.layout.bar_x(rank, count)
            bar.width = self.layout.bar_width(count)
            bar.height = self.layout.bar_height(bar.value)
            bar.y = self.layout.bar_y(bar.value)
            bar.fill = breaks.color_for(bar.value, self.settings.palette, self.settings.fallback_color)
            bar.delay_ms = rank * self.settings.transition_stagger_ms
            bar.duration_ms = self.settings.transition_duration_ms

        self.title = get_attribute(attribute).chart_label

    def order(self) -> List[str]:
        return [bar.key for bar in self.bars]

    def bar_for(self, key: str) -> Optional[BarElement]:
        for bar in self.bars:
            if bar.key == key:
                return bar
        return None

    def to_svg(self, dpi: int = 96) -> str:
        """Render the current bar layout as an SVG document (pixel coordinates)."""
        layout = self.layout
        fig, ax = plt.subplots(figsize=(layout.width / dpi, layout.height / dpi), dpi=dpi)
        try:
            fig.subplots_adjust(left=0, right=1, top=1, bottom=0)
            ax.set_xlim(0, layout.width)
            ax.set_ylim(layout.height, 0)  # SVG-style: y grows downwards
            ax.set_axis_off()

            frame = dict(
                xy=(layout.left_padding, layout.top_bottom_padding),
                width=layout.inner_width,
                height=layout.inner_height,
            )
            ax.add_patch(Rectangle(**frame, facecolor="#f8f8f8", edgecolor="none"))

            for bar in self.bars:
                ax.add_patch(
                    Rectangle(
                        (bar.x, bar.y),
                        bar.width,
                        bar.height,
                        facecolor=bar.fill,
                        edgecolor=bar.stroke,
                        linewidth=bar.stroke_width,
                        gid=bar_id(bar.key),
                    )
                )

            # Left axis ticks every tenth of the domain
            low, high = layout.domain
            for step in range(11):
                tick = low + (high - low) * step / 10
                y = layout.y_scale(tick) + layout.top_bottom_padding
                ax.plot([layout.left_padding - 4, layout.left_padding], [y, y], color="#333333", lw=0.8)
                ax.text(layout.left_padding - 6, y, f"{tick:g}", ha="right", va="center", fontsize=7)

            ax.add_patch(Rectangle(**frame, facecolor="none", edgecolor="#333333", linewidth=2))
            ax.text(40, 30, self.title, ha="left", va="baseline", fontsize=14, color="#333333")

            buffer = io.BytesIO()
            fig.savefig(buffer, format="svg", facecolor="white", edgecolor="none")
            return buffer.getvalue().decode("utf-8")
        finally:
            plt.close(fig)  # Close to free memory


def bar_id(key: str) -> str:
    """Element id of a bar group in the chart SVG."""
    return f"bar-{key}"


def sort_bars(bars: Sequence[BarElement]) -> List[BarElement]:
    """
    Order bars descending by value with a total order.

    Absent values sort after every present value, as if they were -infinity.
    Ties (including among absent values) are broken by ascending key.
    """

    def sort_key(bar: BarElement) -> Tuple[int, float, str]:
        if bar.value is None:
            return (1, 0.0, bar.key)
        return (0, -bar.value, bar.key)

    return sorted(bars, key=sort_key)
