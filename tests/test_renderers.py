"""Tests for the map and chart facades and the shared style registry."""

import pandas as pd
import pytest

from tractmap.classification import ClassBreaks
from tractmap.data_utils import join_attributes, prepare_records
from tractmap.renderers import (
    BarElement,
    ChartFacade,
    ChartLayout,
    MapFacade,
    PaintSettings,
    StrokeStyle,
    StyleRegistry,
    Tooltip,
    VisualElement,
    sort_bars,
)

KEY = "TRACTCE"
BREAKS = ClassBreaks((10.0, 20.0, 30.0, 40.0))


@pytest.fixture
def settings(config):
    return PaintSettings.from_config(config)


@pytest.fixture
def registry(settings):
    return StyleRegistry(settings.highlight_style)


@pytest.fixture
def numeric_records(raw_records):
    return prepare_records(raw_records, KEY)


class TestStyleRegistry:
    def test_register_applies_default(self, registry):
        element = VisualElement(key="001", kind="tract")

        registry.register(element, StrokeStyle("#ccc", 0.5))

        assert element.style == StrokeStyle("#ccc", 0.5)

    def test_highlight_round_trip(self, registry):
        tract = VisualElement(key="001", kind="tract")
        bar = BarElement(key="001", kind="bar")
        other = VisualElement(key="002", kind="tract")
        registry.register(tract, StrokeStyle("#ccc", 0.5))
        registry.register(bar, StrokeStyle("none", 0))
        registry.register(other, StrokeStyle("#ccc", 0.5))

        highlighted = registry.highlight("001")

        assert {e.kind for e in highlighted} == {"tract", "bar"}
        assert tract.style == bar.style == StrokeStyle("#ef5641", 3)
        assert other.style == StrokeStyle("#ccc", 0.5)

        registry.dehighlight("001")

        assert tract.style == StrokeStyle("#ccc", 0.5)
        assert bar.style == StrokeStyle("none", 0)

    def test_dehighlight_restores_each_kind_from_its_default(self, registry):
        tract = VisualElement(key="001", kind="tract")
        bar = BarElement(key="001", kind="bar")
        registry.register(tract, StrokeStyle("#ccc", 0.5))
        registry.register(bar, StrokeStyle("none", 0))

        # Stray restyling between highlight and dehighlight does not leak through
        registry.highlight("001")
        tract.apply_style(StrokeStyle("#000", 9))
        registry.dehighlight("001")

        assert registry.default_style("001", "tract") == StrokeStyle("#ccc", 0.5)
        assert tract.style == registry.default_style("001", "tract")
        assert bar.style == registry.default_style("001", "bar")

    def test_unknown_key_is_a_no_op(self, registry):
        assert registry.highlight("999") == []
        assert registry.dehighlight("999") == []


class TestChartLayout:
    def test_inner_dimensions(self):
        layout = ChartLayout()

        assert layout.inner_width == 708
        assert layout.inner_height == 600

    def test_y_scale_is_decreasing_over_domain(self):
        layout = ChartLayout()

        assert layout.y_scale(0) == 600
        assert layout.y_scale(50) == 300
        assert layout.y_scale(100) == 0

    def test_bar_geometry(self):
        layout = ChartLayout()

        assert layout.bar_height(80) == pytest.approx(480)
        assert layout.bar_y(80) == pytest.approx(170)
        assert layout.bar_x(1, 4) == pytest.approx(202)
        assert layout.bar_width(4) == pytest.approx(176)

    def test_absent_value_sits_on_baseline(self):
        layout = ChartLayout()

        assert layout.bar_height(None) == 0
        assert layout.bar_y(None) == 650


class TestSortBars:
    def test_descending_with_absent_last_and_key_ties(self):
        bars = [
            BarElement(key="d", kind="bar", value=None),
            BarElement(key="c", kind="bar", value=50.0),
            BarElement(key="a", kind="bar", value=None),
            BarElement(key="b", kind="bar", value=50.0),
            BarElement(key="e", kind="bar", value=90.0),
            BarElement(key="f", kind="bar", value=-5.0),
        ]

        assert [bar.key for bar in sort_bars(bars)] == ["e", "b", "c", "f", "a", "d"]


class TestChartFacade:
    def test_update_sorts_and_lays_out(self, numeric_records, registry, settings):
        chart = ChartFacade(numeric_records, KEY, registry, settings)

        chart.update("race", BREAKS)

        assert chart.order() == ["000300", "000400", "000100", "000200"]
        first = chart.bars[0]
        assert first.x == pytest.approx(25)
        assert first.width == pytest.approx(708 / 4 - 1)
        assert first.height == pytest.approx(570)
        assert first.y == pytest.approx(80)
        assert first.fill == settings.palette[4]
        assert [bar.delay_ms for bar in chart.bars] == [0, 20, 40, 60]
        assert all(bar.duration_ms == 500 for bar in chart.bars)
        assert chart.title == "Percent white"

    def test_absent_value_bar(self, numeric_records, registry, settings):
        chart = ChartFacade(numeric_records, KEY, registry, settings)

        chart.update("income", BREAKS)

        assert chart.order()[-1] == "000200"
        bar = chart.bar_for("000200")
        assert bar.height == 0
        assert bar.fill == "#fff"

    def test_resort_on_attribute_change(self, numeric_records, registry, settings):
        chart = ChartFacade(numeric_records, KEY, registry, settings)
        chart.update("race", BREAKS)

        chart.update("age", BREAKS)

        assert chart.order() == ["000200", "000300", "000100", "000400"]
        assert chart.title == "Percent 65 years and over"

    def test_to_svg(self, numeric_records, registry, settings):
        chart = ChartFacade(numeric_records, KEY, registry, settings)
        chart.update("race", BREAKS)

        svg = chart.to_svg()

        assert "<svg" in svg
        assert 'id="bar-000100"' in svg


class TestMapFacade:
    def test_recolor(self, tract_features, raw_records, registry, settings):
        joined = join_attributes(tract_features, raw_records, KEY)
        facade = MapFacade(joined, KEY, registry, settings)

        facade.recolor("income", BREAKS)

        assert facade.fill_for("000100") == settings.palette[0]
        assert facade.fill_for("000200") == "#fff"
        assert facade.fill_for("000400") == settings.palette[1]
        assert facade.value_for("000200") is None

    def test_elements_share_registry_with_chart(self, tract_features, raw_records, registry, settings):
        joined = join_attributes(tract_features, raw_records, KEY)
        MapFacade(joined, KEY, registry, settings)
        ChartFacade(prepare_records(raw_records, KEY), KEY, registry, settings)

        assert {e.kind for e in registry.elements_for("000300")} == {"tract", "bar"}

    def test_to_geojson_carries_paint(self, tract_features, raw_records, registry, settings):
        joined = join_attributes(tract_features, raw_records, KEY)
        facade = MapFacade(joined, KEY, registry, settings)
        facade.recolor("income", BREAKS)

        features = facade.to_geojson()["features"]

        props = {f["properties"][KEY]: f["properties"] for f in features}
        assert props["000200"]["_fill"] == "#fff"
        assert props["000200"]["_value_text"] == "No data"
        assert props["000100"]["_stroke"] == "#ccc"

    def test_to_folium_requires_paint(self, tract_features, raw_records, registry, settings):
        facade = MapFacade(join_attributes(tract_features, raw_records, KEY), KEY, registry, settings)

        with pytest.raises(ValueError):
            facade.to_folium("title", [44.4, -73.1], 10, "CartoDB Positron")

    def test_to_folium(self, tract_features, raw_records, registry, settings):
        facade = MapFacade(join_attributes(tract_features, raw_records, KEY), KEY, registry, settings)
        facade.recolor("race", BREAKS)

        html = facade.to_folium("Census tracts", [44.4, -73.1], 10, "CartoDB Positron").get_root().render()

        assert "Census tracts" in html
        assert "Tract code:" in html
        assert "#ef5641" in html


class TestTooltip:
    def test_html(self):
        tooltip = Tooltip(key="000100", value=80.0, label="% white")

        assert tooltip.value_text == "80"
        assert "<h1>80</h1>" in tooltip.html()
        assert "Tract code: 000100" in tooltip.html()

    def test_absent_value(self):
        assert Tooltip(key="1", value=None, label="x").value_text == "No data"
