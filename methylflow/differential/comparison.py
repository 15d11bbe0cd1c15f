"""
Sample grouping for the Control vs Methylated comparison
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import pandas as pd

from ..config import CONTROL_GROUP, REMOVAL_GROUP, TREATED_GROUP, SampleGroupRules
from ..exceptions import EmptyGroupError
from ..utils import get_logger

logger = get_logger(__name__)


def assign_sample_groups(samples: Iterable[str], rules: Optional[SampleGroupRules] = None) -> pd.Series:
    """
    Map sample names to groups

    Returns:
        Series indexed by sample with 'Control', 'Methylated', 'Removal' or
        None for samples no rule matches
    """
    rules = rules or SampleGroupRules()
    samples = [str(s) for s in samples]
    return pd.Series([rules.match(s) for s in samples], index=samples, name="group", dtype=object)


@dataclass
class ComparisonData:
    """Counts restricted to the two comparison groups"""

    counts: pd.DataFrame
    groups: pd.Series
    excluded: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def control_samples(self) -> List[str]:
        return self.groups.index[self.groups == CONTROL_GROUP].tolist()

    @property
    def treated_samples(self) -> List[str]:
        return self.groups.index[self.groups == TREATED_GROUP].tolist()


def prepare_comparison(counts: pd.DataFrame, rules: Optional[SampleGroupRules] = None) -> ComparisonData:
    """
    Select the Control and Methylated samples of a count matrix

    Removal samples and unmatched samples are excluded before fitting.

    Raises:
        EmptyGroupError: either group has no samples
    """
    groups = assign_sample_groups(counts.columns, rules)

    excluded = {
        "removal": groups.index[groups == REMOVAL_GROUP].tolist(),
        "unmatched": groups.index[groups.isna()].tolist(),
    }
    for reason, samples in excluded.items():
        if samples:
            logger.info(f"Excluding {reason} samples: {samples}")

    kept = groups[groups.isin([CONTROL_GROUP, TREATED_GROUP])]
    for group in (CONTROL_GROUP, TREATED_GROUP):
        if not (kept == group).any():
            raise EmptyGroupError(group, counts.columns)

    logger.info(
        f"Comparison {TREATED_GROUP} vs {CONTROL_GROUP}: "
        f"{(kept == TREATED_GROUP).sum()} vs {(kept == CONTROL_GROUP).sum()} samples"
    )
    return ComparisonData(counts=counts[kept.index.tolist()], groups=kept, excluded=excluded)
