"""
Fold-change categories for the Figure 5 bar charts

Only robustly methylated regions (delta methylation above a threshold) are
counted. Their fold changes are cut into fixed right-closed bins and each
bin maps to one of three effect classes. The headline numbers are plain
counts divided by the number of counted regions.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..utils import get_logger, require_columns

logger = get_logger(__name__)

INCREASE = "Increase"
SMALL_DECREASE = "SmallDecrease"
DECREASE = "Decrease"
EFFECT_CLASSES = [INCREASE, SMALL_DECREASE, DECREASE]

DEFAULT_FC_BOUNDARIES = (0, 0.3, 0.5, 0.7, 0.9, 1.1, np.inf)
DEFAULT_LOG2_BOUNDARIES = (-6, -4, -2, -1, -0.5, 0, 0.5, 1, 2, 4, 6)


def _format_boundary(value: float) -> str:
    if np.isinf(value):
        return "Inf" if value > 0 else "-Inf"
    return f"{value:g}"


def interval_labels(boundaries: Sequence[float]) -> List[str]:
    """Labels '(lo,hi]' for consecutive boundaries"""
    return [
        f"({_format_boundary(lo)},{_format_boundary(hi)}]"
        for lo, hi in zip(boundaries[:-1], boundaries[1:])
    ]


def default_class_map(labels: Sequence[str]) -> Dict[str, str]:
    """Last two bins increase, the one before decreases slightly, the rest decrease"""
    class_map = {label: DECREASE for label in labels}
    for label in labels[-2:]:
        class_map[label] = INCREASE
    if len(labels) >= 3:
        class_map[labels[-3]] = SMALL_DECREASE
    return class_map


@dataclass
class CategorySummary:
    """Counts and percentages of a classified region table"""

    total: int
    bin_counts: Dict[str, int]
    class_counts: Dict[str, int]
    class_percentages: Dict[str, float]
    bin_percentages: Dict[str, float]
    significant_class_counts: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "bin_counts": self.bin_counts,
            "bin_percentages": self.bin_percentages,
            "class_counts": self.class_counts,
            "class_percentages": self.class_percentages,
            "significant_class_counts": self.significant_class_counts,
        }

    def to_frame(self) -> pd.DataFrame:
        """One row per effect class with count and percentage"""
        return pd.DataFrame(
            {
                "effect_class": list(self.class_counts),
                "count": list(self.class_counts.values()),
                "percentage": [self.class_percentages[c] for c in self.class_counts],
            }
        )


class CategoryBinner:
    """Apply the fold-change bin and effect-class policy"""

    def __init__(
        self,
        threshold_high: float = 0.3,
        boundaries: Sequence[float] = DEFAULT_FC_BOUNDARIES,
        log2_boundaries: Sequence[float] = DEFAULT_LOG2_BOUNDARIES,
        class_map: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize binner

        Args:
            threshold_high: Regions need delta methylation strictly above this
            boundaries: Fold-change bin edges, increasing
            log2_boundaries: Inner edges of the diagnostic log2 bins
            class_map: Bin label -> effect class; derived from the bins if omitted
        """
        self.threshold_high = threshold_high
        self.boundaries = [float(b) for b in boundaries]
        if self.boundaries != sorted(self.boundaries):
            raise ValueError("Bin boundaries must be increasing")
        self.labels = interval_labels(self.boundaries)
        self.class_map = class_map or default_class_map(self.labels)

        self.log2_boundaries = [-np.inf] + [float(b) for b in log2_boundaries] + [np.inf]
        self.log2_labels = interval_labels(self.log2_boundaries)

    @classmethod
    def from_config(cls, binning: Dict[str, Any]) -> "CategoryBinner":
        return cls(
            threshold_high=binning.get("threshold_high", 0.3),
            boundaries=binning.get("fc_boundaries", DEFAULT_FC_BOUNDARIES),
            log2_boundaries=binning.get("log2_boundaries", DEFAULT_LOG2_BOUNDARIES),
            class_map=binning.get("class_map"),
        )

    def filter_methylated(self, df: pd.DataFrame) -> pd.DataFrame:
        require_columns(df, ["delta_methylation"], "Association table")
        kept = df.loc[df["delta_methylation"] > self.threshold_high]
        logger.info(
            f"{len(kept)} of {len(df)} regions have delta methylation > {self.threshold_high}"
        )
        return kept

    def classify(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Bin fold changes of robustly methylated regions into effect classes

        Returns:
            New DataFrame restricted to delta_methylation > threshold_high with
            'fc_bin' and 'effect_class' columns. Running it again on its own
            output returns the same rows and classes.
        """
        require_columns(df, ["fold_change"], "Association table")
        kept = self.filter_methylated(df)

        fc_bin = pd.cut(
            kept["fold_change"],
            bins=self.boundaries,
            labels=self.labels,
            right=True,
            include_lowest=True,
        )
        effect_class = pd.Categorical(
            fc_bin.astype(object).map(self.class_map), categories=EFFECT_CLASSES
        )
        return kept.assign(fc_bin=fc_bin, effect_class=effect_class)

    def classify_log2(self, df: pd.DataFrame) -> pd.DataFrame:
        """Diagnostic variant: bin log2 fold change, Increase iff it is positive"""
        require_columns(df, ["log2FoldChange"], "Association table")
        kept = self.filter_methylated(df)

        log2_bin = pd.cut(
            kept["log2FoldChange"], bins=self.log2_boundaries, labels=self.log2_labels, right=True
        )
        effect_class = pd.Categorical(
            np.where(kept["log2FoldChange"] > 0, INCREASE, DECREASE),
            categories=[INCREASE, DECREASE],
        )
        return kept.assign(log2_bin=log2_bin, effect_class=effect_class)

    def summarize(self, classified: pd.DataFrame, bin_column: str = "fc_bin") -> CategorySummary:
        """Counts per bin and class, percentages as count / total * 100"""
        total = len(classified)

        bin_counts = classified[bin_column].value_counts(sort=False)
        bin_counts = {str(k): int(v) for k, v in bin_counts.items()}

        classes = list(classified["effect_class"].cat.categories)
        class_series = classified["effect_class"].value_counts(sort=False)
        class_counts = {c: int(class_series.get(c, 0)) for c in classes}

        def percent(count: int) -> float:
            return 100.0 * count / total if total else 0.0

        significant_class_counts = {}
        if "significant" in classified.columns:
            for flag, label in ((True, "significant"), (False, "not_significant")):
                subset = classified.loc[classified["significant"].astype(bool) == flag]
                counts = subset["effect_class"].value_counts(sort=False)
                significant_class_counts[label] = {c: int(counts.get(c, 0)) for c in classes}

        summary = CategorySummary(
            total=total,
            bin_counts=bin_counts,
            class_counts=class_counts,
            class_percentages={c: percent(n) for c, n in class_counts.items()},
            bin_percentages={b: percent(n) for b, n in bin_counts.items()},
            significant_class_counts=significant_class_counts,
        )

        logger.info(
            "Effect classes: "
            + ", ".join(
                f"{c} {class_counts[c]} ({summary.class_percentages[c]:.1f}%)" for c in classes
            )
        )
        return summary
