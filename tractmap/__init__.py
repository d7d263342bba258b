"""
Tract Choropleth Viewer

Coordinated choropleth map and ranked bar chart of census-tract attributes.

The main entry points are exposed at the package level:
    from tractmap import Config, build_session
"""

__version__ = "0.1.0"

from .attributes import ATTRIBUTES, AttributeMeta, InvalidAttributeError, attribute_ids, get_attribute
from .classification import ClassBreaks, compute_attribute_breaks, compute_breaks
from .config_loader import Config
from .data_utils import join_attributes, parse_value
from .selection import SelectionState, place_tooltip
from .session import CoordinatedSession, InitializationError, build_session

__all__ = [
    "ATTRIBUTES",
    "AttributeMeta",
    "ClassBreaks",
    "Config",
    "CoordinatedSession",
    "InitializationError",
    "InvalidAttributeError",
    "SelectionState",
    "attribute_ids",
    "build_session",
    "compute_attribute_breaks",
    "compute_breaks",
    "get_attribute",
    "join_attributes",
    "parse_value",
    "place_tooltip",
]
