"""
Sample grouping rules for MethylFlow

RNA-seq sample names are mapped to the two comparison groups with
case-insensitive regular expressions, checked in the order
removal -> control -> treated. The first matching rule wins.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

CONTROL_GROUP = "Control"
TREATED_GROUP = "Methylated"
REMOVAL_GROUP = "Removal"


@dataclass
class SampleGroupRules:
    """Regex rules assigning sample names to Control / Methylated"""

    removal: List[str] = field(default_factory=lambda: ["removal"])
    control: List[str] = field(
        default_factory=lambda: ["control", "no[_-]?dox", "untreated"]
    )
    treated: List[str] = field(default_factory=lambda: ["dox", "treated"])

    def __post_init__(self):
        self._compiled = [
            (REMOVAL_GROUP, [re.compile(p, re.IGNORECASE) for p in self.removal]),
            (CONTROL_GROUP, [re.compile(p, re.IGNORECASE) for p in self.control]),
            (TREATED_GROUP, [re.compile(p, re.IGNORECASE) for p in self.treated]),
        ]

    @classmethod
    def from_config(cls, groups: Optional[Dict[str, Any]] = None) -> "SampleGroupRules":
        """Build rules from the ``differential.sample_groups`` section"""
        groups = groups or {}
        defaults = cls()
        return cls(
            removal=list(groups.get("removal", defaults.removal)),
            control=list(groups.get("control", defaults.control)),
            treated=list(groups.get("treated", defaults.treated)),
        )

    def match(self, sample: str) -> Optional[str]:
        """Return the group a sample name belongs to, or None if unmatched"""
        for group, patterns in self._compiled:
            if any(pattern.search(sample) for pattern in patterns):
                return group
        return None

    def validate(self) -> List[str]:
        issues = []
        for name, patterns in (("control", self.control), ("treated", self.treated)):
            if not patterns:
                issues.append(f"No {name} patterns configured")
        return issues
