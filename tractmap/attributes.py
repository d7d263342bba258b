"""
Attribute registry for the selectable tract attributes.

Every attribute the viewer can express is registered here once, with the
labels used by the chart title, the tooltip and the dropdown.
"""

from dataclasses import dataclass
from typing import Dict, List

from loguru import logger


class InvalidAttributeError(ValueError):
    """Raised when an attribute id is not one of the registered attributes."""


@dataclass(frozen=True)
class AttributeMeta:
    """Display metadata for a selectable attribute."""

    attribute_id: str
    chart_label: str
    short_label: str


class AttributeRegistry:
    """Fixed, ordered registry of selectable attributes."""

    def __init__(self) -> None:
        self._attributes: Dict[str, AttributeMeta] = {}
        self._register_base_attributes()

    def register(self, meta: AttributeMeta) -> None:
        """Register an attribute definition."""
        self._attributes[meta.attribute_id] = meta
        logger.trace(f"Registered attribute: {meta.attribute_id}")

    def attribute_ids(self) -> List[str]:
        return list(self._attributes.keys())

    def validate(self, attribute_id: str) -> str:
        """Return the attribute id unchanged, or raise InvalidAttributeError."""
        if attribute_id not in self._attributes:
            raise InvalidAttributeError(
                f"Unknown attribute '{attribute_id}'. Expected one of: {self.attribute_ids()}"
            )
        return attribute_id

    def get(self, attribute_id: str) -> AttributeMeta:
        return self._attributes[self.validate(attribute_id)]

    def __contains__(self, attribute_id: object) -> bool:
        return attribute_id in self._attributes

    def __iter__(self):
        return iter(self._attributes.values())

    def __len__(self) -> int:
        return len(self._attributes)

    def _register_base_attributes(self) -> None:
        """Register the ACS tract attributes, in dropdown order."""
        self.register(AttributeMeta("race", "Percent white", "% white"))
        self.register(AttributeMeta("age", "Percent 65 years and over", "% age 65+"))
        self.register(
            AttributeMeta(
                "education",
                "Percent with a bachelor's degree (25 years and over)",
                "% higher education",
            )
        )
        self.register(
            AttributeMeta(
                "income",
                "Percent of households earning $200,000 or more",
                "% households earning $200k+",
            )
        )
        self.register(
            AttributeMeta(
                "healthcare",
                "Percent covered by private health insurance",
                "% with private health insurance",
            )
        )
        self.register(AttributeMeta("native", "Percent born in Vermont", "% born in VT"))


# Global registry instance
ATTRIBUTES = AttributeRegistry()


def attribute_ids() -> List[str]:
    """Ordered attribute ids; the first one is expressed on start-up."""
    return ATTRIBUTES.attribute_ids()


def get_attribute(attribute_id: str) -> AttributeMeta:
    """Look up attribute metadata, raising InvalidAttributeError for unknown ids."""
    return ATTRIBUTES.get(attribute_id)


def validate_attribute(attribute_id: str) -> str:
    return ATTRIBUTES.validate(attribute_id)
