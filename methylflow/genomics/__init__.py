"""
Genomic region operations for MethylFlow

This module provides interval overlap and nearest-region lookups, promoter
annotation, region to gene association and fold-change categorization.
"""

from .annotations import PromoterAnnotation, build_promoters, read_refgene
from .association import (RegionGeneAssociator, add_a_value,
                          add_delta_methylation, collapse_to_gene,
                          join_expression, nearest_promoters, quantile_bin)
from .binning import (DECREASE, EFFECT_CLASSES, INCREASE, SMALL_DECREASE,
                      CategoryBinner, CategorySummary)
from .intervals import (annotate_nearest, nearest_distance, overlap_fraction,
                        overlap_mask)

__all__ = [
    "overlap_mask",
    "overlap_fraction",
    "nearest_distance",
    "annotate_nearest",
    "PromoterAnnotation",
    "build_promoters",
    "read_refgene",
    "RegionGeneAssociator",
    "nearest_promoters",
    "join_expression",
    "add_delta_methylation",
    "add_a_value",
    "quantile_bin",
    "collapse_to_gene",
    "CategoryBinner",
    "CategorySummary",
    "INCREASE",
    "SMALL_DECREASE",
    "DECREASE",
    "EFFECT_CLASSES",
]
