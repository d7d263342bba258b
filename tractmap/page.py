"""
HTML page export for the coordinated view.

Each page shows the Leaflet choropleth, the ranked bar chart (inline SVG) and
the attribute dropdown. One page is written per attribute; choosing another
attribute in the dropdown opens that attribute's page.
"""

import html
import json
from dataclasses import asdict
from pathlib import Path
from string import Template
from typing import Dict, List, Optional

import folium
from loguru import logger

from .attributes import ATTRIBUTES
from .renderers import StrokeStyle, bar_id
from .session import CoordinatedSession

INDEX_PAGE = "index.html"


def page_name(attribute: str) -> str:
    return f"{attribute}.html"


def dropdown_html(expressed_attribute: str) -> str:
    """Single-selection control listing every attribute, current one selected."""
    options = ['<option class="titleOption" disabled>Select attribute</option>']
    for meta in ATTRIBUTES:
        selected = " selected" if meta.attribute_id == expressed_attribute else ""
        options.append(
            f'<option value="{page_name(meta.attribute_id)}"{selected}>'
            f"{html.escape(meta.chart_label)}</option>"
        )

    return f"""
    <select class="dropdown" onchange="window.location.href = this.value;"
        style="position: fixed; top: 10px; left: 60px; z-index: 9999; font-size: 14px;">
        {''.join(options)}
    </select>
    """


def chart_html(session: CoordinatedSession) -> str:
    svg = session.chart.to_svg(dpi=int(session.config.get_visualization_setting("chart_dpi") or 96))
    # Drop the XML prolog and doctype so the SVG can be inlined
    svg = svg[svg.find("<svg"):]
    return f"""
    <div class="chart" style="position: fixed; top: 50px; right: 10px; z-index: 9999;
        background: white; box-shadow: 0 2px 6px rgba(0,0,0,.35);">
        {svg}
    </div>
    """


def bar_transition_css(session: CoordinatedSession) -> str:
    """Staggered entry animation for the bars, in ranked order."""
    rules = [
        "@keyframes bar-enter { from { opacity: 0; } to { opacity: 1; } }",
        ".chart svg path { transition: stroke-width 150ms; }",
    ]
    for bar in session.chart.bars:
        rules.append(
            f"#{bar_id(bar.key)} {{ animation: bar-enter {bar.duration_ms}ms ease-out "
            f"{bar.delay_ms}ms both; }}"
        )
    return "<style>\n" + "\n".join(rules) + "\n</style>"


HOVER_SCRIPT = Template(
    """
<div class="infolabel" style="position: fixed; display: none; z-index: 10000; padding: 4px 10px;
    background: white; border: 1px solid #999999; border-radius: 4px; pointer-events: none;
    font-family: Arial, sans-serif;"></div>
<script>
window.addEventListener("load", function () {
    var hover = $settings;
    var label = document.querySelector(".infolabel");
    var tracts = {};

    $layer.eachLayer(function (polygon) {
        tracts[polygon.feature.properties[hover.keyColumn]] = polygon;
    });

    function barPaths(key) {
        var group = document.getElementById("bar-" + key);
        return group ? group.querySelectorAll("path") : [];
    }

    function paint(key, kind, style) {
        if (kind === "tract" && tracts[key]) {
            tracts[key].setStyle({color: style.stroke, weight: style.stroke_width});
            if (style === hover.highlight) { tracts[key].bringToFront(); }
        }
        if (kind === "bar") {
            barPaths(key).forEach(function (path) {
                path.style.stroke = style.stroke;
                path.style.strokeWidth = style.stroke_width + "px";
            });
        }
    }

    function highlight(key) {
        Object.keys(hover.defaults[key] || {}).forEach(function (kind) {
            paint(key, kind, hover.highlight);
        });
    }

    function dehighlight(key) {
        var defaults = hover.defaults[key] || {};
        Object.keys(defaults).forEach(function (kind) {
            paint(key, kind, defaults[kind]);
        });
    }

    function moveLabel(event) {
        var width = label.offsetWidth;
        var t = hover.tooltip;
        var x = event.clientX > window.innerWidth - width - t.right_margin
            ? event.clientX - width - t.offset_x
            : event.clientX + t.offset_x;
        var y = event.clientY < t.top_margin
            ? event.clientY + t.offset_below
            : event.clientY - t.offset_above;
        label.style.left = x + "px";
        label.style.top = y + "px";
    }

    function enter(key, event) {
        highlight(key);
        label.innerHTML = hover.labels[key] || "";
        label.style.display = "block";
        moveLabel(event);
    }

    function leave(key) {
        dehighlight(key);
        label.style.display = "none";
    }

    Object.keys(tracts).forEach(function (key) {
        tracts[key].on("mouseover", function (e) { enter(key, e.originalEvent); });
        tracts[key].on("mousemove", function (e) { moveLabel(e.originalEvent); });
        tracts[key].on("mouseout", function () { leave(key); });
    });

    document.querySelectorAll(".chart g[id^='bar-']").forEach(function (group) {
        var key = group.id.slice(4);
        group.addEventListener("mouseover", function (e) { enter(key, e); });
        group.addEventListener("mousemove", moveLabel);
        group.addEventListener("mouseout", function () { leave(key); });
    });
});
</script>
"""
)


def _style_dict(style: StrokeStyle) -> Dict[str, object]:
    return {"stroke": style.stroke, "stroke_width": style.stroke_width}


def hover_script(session: CoordinatedSession) -> str:
    """
    Cross-panel hover for the exported page.

    Hovering a tract on either panel applies the highlight stroke to every
    element registered for that tract and shows its label; leaving restores
    each element's registered default stroke.
    """
    if session.map.layer_name is None:
        raise ValueError("Map layer has not been rendered yet")

    registry = session.registry
    keys = registry.keys()
    settings = {
        "keyColumn": session.key_column,
        "highlight": _style_dict(registry.highlight_style),
        "defaults": {
            key: {
                element.kind: _style_dict(registry.default_style(key, element.kind))
                for element in registry.elements_for(key)
            }
            for key in keys
        },
        "labels": {key: session.tooltip_for(key).html() for key in keys},
        "tooltip": asdict(session.tooltip_settings),
    }
    # Keep closing tags in the labels from ending the script block
    payload = json.dumps(settings).replace("</", "<\\/")
    return HOVER_SCRIPT.substitute(settings=payload, layer=session.map.layer_name)


def render_page(session: CoordinatedSession) -> str:
    """Render the page for the session's expressed attribute."""
    config = session.config
    attribute = session.expressed_attribute
    logger.debug(f"  🖼️ Rendering page for '{attribute}'")

    m = session.map.to_folium(
        title=config.get_visualization_setting("map_title"),
        center=config.get_visualization_setting("map_center"),
        zoom=config.get_visualization_setting("map_zoom"),
        tiles=config.get_visualization_setting("map_tiles"),
        fill_opacity=config.get_visualization_setting("map_fill_opacity"),
    )
    m.get_root().html.add_child(folium.Element(dropdown_html(attribute)))
    m.get_root().html.add_child(folium.Element(chart_html(session)))
    m.get_root().header.add_child(folium.Element(bar_transition_css(session)))
    m.get_root().html.add_child(folium.Element(hover_script(session)))
    return m.get_root().render()


def export_pages(session: CoordinatedSession, output_dir: Path) -> List[Path]:
    """
    Write one page per attribute plus an index page for the start-up attribute.

    Args:
        session: Initialized session; it is returned to its start-up attribute
        output_dir: Directory for the HTML pages

    Returns:
        Paths of the written pages, index page last
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    initial = session.expressed_attribute
    written: List[Path] = []

    logger.info(f"💾 Exporting {len(ATTRIBUTES)} attribute pages to {output_dir}")
    for meta in ATTRIBUTES:
        session.select_attribute(meta.attribute_id)
        path = output_dir / page_name(meta.attribute_id)
        path.write_text(render_page(session), encoding="utf-8")
        written.append(path)
        logger.debug(f"     ✅ {path.name}")

    session.select_attribute(initial)
    index_path = output_dir / INDEX_PAGE
    index_path.write_text(render_page(session), encoding="utf-8")
    written.append(index_path)

    logger.success(f"  ✅ Exported {len(written)} pages")
    return written


def render_error_page(message: str, title: Optional[str] = None) -> str:
    """Visible error state shown instead of a blank page when initialization fails."""
    figure = folium.Figure()
    heading = html.escape(title or "The map could not be loaded")
    figure.html.add_child(
        folium.Element(
            f"""
            <div class="loadError" style="margin: 40px auto; max-width: 640px; padding: 20px;
                border: 2px solid #ef5641; border-radius: 5px; font-family: Arial, sans-serif;">
                <h2 style="color: #ef5641;">{heading}</h2>
                <p>{html.escape(message)}</p>
            </div>
            """
        )
    )
    return figure.render()
