"""
Natural-breaks classification for the choropleth color scale.

Values of the expressed attribute are partitioned into five classes with the
optimal variance-minimizing 1-D partition (Fisher-Jenks, the same objective
as Ckmeans). The minimum of each cluster is a class threshold; the global
minimum is dropped because class 0 is simply "below the first threshold",
which leaves four boundaries for five colors.
"""

import bisect
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import mapclassify
import numpy as np
import pandas as pd
from loguru import logger

from .attributes import validate_attribute
from .data_utils import parse_series

DEFAULT_CLASS_COUNT = 5


@dataclass(frozen=True)
class ClassBreaks:
    """Ascending class thresholds; boundaries[i] is the minimum value of class i + 1."""

    boundaries: Tuple[float, ...]

    def classify(self, value: Optional[float]) -> Optional[int]:
        """Class index of a value, or None when the value is absent."""
        if value is None or not math.isfinite(value):
            return None
        # Number of boundaries <= value is the largest boundary <= value, plus one
        return bisect.bisect_right(self.boundaries, value)

    def color_for(self, value: Optional[float], palette: Sequence[str], fallback: str) -> str:
        """Palette color for a value; fallback for absent values."""
        class_index = self.classify(value)
        if class_index is None:
            return fallback
        return palette[min(class_index, len(palette) - 1)]

    def __len__(self) -> int:
        return len(self.boundaries)


def _finite_values(values: Union[pd.Series, Iterable[Optional[float]]]) -> np.ndarray:
    series = values if isinstance(values, pd.Series) else pd.Series(list(values), dtype=object)
    parsed = parse_series(series)
    return parsed.dropna().to_numpy(dtype=float)


def _cluster_minimums(values: np.ndarray, k: int) -> List[float]:
    """Minimum value of each natural-breaks cluster, ascending."""
    distinct = np.unique(values)
    if len(distinct) < k:
        # Degenerate input: every distinct value is its own cluster
        logger.debug(f"     Only {len(distinct)} distinct values for {k} classes")
        return [float(v) for v in distinct]

    fj = mapclassify.FisherJenks(values, k=k)
    minimums = pd.Series(values).groupby(np.asarray(fj.yb)).min()
    return sorted(float(v) for v in minimums)


def compute_breaks(
    values: Union[pd.Series, Iterable[Optional[float]]], k: int = DEFAULT_CLASS_COUNT
) -> ClassBreaks:
    """
    Compute natural-breaks class boundaries for a set of values.

    Args:
        values: Attribute values; absent or non-numeric entries are excluded
        k: Number of classes

    Returns:
        ClassBreaks with k - 1 ascending boundaries. Degenerate input yields
        duplicate boundaries (empty classes); empty input yields no boundaries.
    """
    finite = _finite_values(values)
    if len(finite) == 0:
        logger.warning("  ⚠️ No values to classify, every tract falls in the first class")
        return ClassBreaks(())

    minimums = _cluster_minimums(finite, k)

    # Drop the global minimum: class 0 is everything below the first boundary
    boundaries = minimums[1:]

    # Pad degenerate partitions with the maximum so there are always k - 1 boundaries
    maximum = float(finite.max())
    while len(boundaries) < k - 1:
        boundaries.append(maximum)

    logger.debug(f"     📊 Class boundaries: {boundaries}")
    return ClassBreaks(tuple(boundaries))


def compute_attribute_breaks(
    records: pd.DataFrame, attribute: str, k: int = DEFAULT_CLASS_COUNT
) -> ClassBreaks:
    """Natural breaks for one attribute across all records."""
    validate_attribute(attribute)
    if attribute not in records.columns:
        logger.warning(f"  ⚠️ Attribute '{attribute}' not present in records")
        return ClassBreaks(())
    return compute_breaks(records[attribute], k=k)
