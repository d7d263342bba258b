"""
Shared selection state for the coordinated map and chart.

One SelectionState is created per session and handed to both facades. It
holds the expressed attribute and the highlighted tract key; changing the
expressed attribute notifies subscribers, which re-classify and repaint.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from loguru import logger

from .attributes import validate_attribute
from .config_loader import Config

AttributeListener = Callable[[str], None]


@dataclass(frozen=True)
class TooltipSettings:
    """Screen-space offsets for the floating tooltip, in pixels."""

    offset_x: float = 10
    offset_above: float = 75
    offset_below: float = 25
    right_margin: float = 20
    top_margin: float = 75

    @classmethod
    def from_config(cls, config: Config) -> "TooltipSettings":
        return cls(
            offset_x=config.get_interaction_setting("tooltip_offset_x"),
            offset_above=config.get_interaction_setting("tooltip_offset_above"),
            offset_below=config.get_interaction_setting("tooltip_offset_below"),
            right_margin=config.get_interaction_setting("tooltip_right_margin"),
            top_margin=config.get_interaction_setting("tooltip_top_margin"),
        )


def place_tooltip(
    pointer_x: float,
    pointer_y: float,
    label_width: float,
    viewport_width: float,
    settings: TooltipSettings = TooltipSettings(),
) -> Tuple[float, float]:
    """
    Choose the tooltip's top-left corner so it stays inside the viewport.

    The tooltip sits to the right of and above the pointer. It flips to the
    left when it would overflow the right edge, and below the pointer when the
    pointer is too close to the top edge.
    """
    if pointer_x > viewport_width - label_width - settings.right_margin:
        x = pointer_x - label_width - settings.offset_x
    else:
        x = pointer_x + settings.offset_x

    if pointer_y < settings.top_margin:
        y = pointer_y + settings.offset_below
    else:
        y = pointer_y - settings.offset_above

    return x, y


class SelectionState:
    """Expressed attribute and highlighted key shared by both facades."""

    def __init__(self, expressed_attribute: str):
        self._expressed_attribute = validate_attribute(expressed_attribute)
        self._highlighted_key: Optional[str] = None
        self._listeners: List[AttributeListener] = []

    @property
    def expressed_attribute(self) -> str:
        return self._expressed_attribute

    @property
    def highlighted_key(self) -> Optional[str]:
        return self._highlighted_key

    def subscribe(self, listener: AttributeListener) -> None:
        """Register a callback run after every expressed-attribute change."""
        self._listeners.append(listener)

    def set_expressed_attribute(self, attribute: str) -> bool:
        """
        Express a new attribute.

        Args:
            attribute: Attribute id from the registry

        Returns:
            True if the expressed attribute changed (listeners were notified)

        Raises:
            InvalidAttributeError: if the attribute is not registered
        """
        validate_attribute(attribute)
        if attribute == self._expressed_attribute:
            return False

        logger.debug(f"🎛️ Expressed attribute: {self._expressed_attribute} → {attribute}")
        self._expressed_attribute = attribute
        for listener in self._listeners:
            listener(attribute)
        return True

    def highlight(self, key: str) -> None:
        self._highlighted_key = key

    def dehighlight(self, key: str) -> None:
        # Leaving an element that is not the highlighted one changes nothing
        if self._highlighted_key == key:
            self._highlighted_key = None
