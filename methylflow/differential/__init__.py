"""
Differential expression module for MethylFlow

This module compares Methylated against Control RNA-seq samples with
PyDESeq2, or with DESeq2 through R integration.
"""

from .analyzer import (DifferentialExpressionRunner, DifferentialResult,
                       classify_results, drop_untested, filter_low_counts)
from .comparison import ComparisonData, assign_sample_groups, prepare_comparison
from .methods import DESeq2Analyzer, PyDESeq2Analyzer

__all__ = [
    "DifferentialExpressionRunner",
    "DifferentialResult",
    "classify_results",
    "drop_untested",
    "filter_low_counts",
    "ComparisonData",
    "assign_sample_groups",
    "prepare_comparison",
    "PyDESeq2Analyzer",
    "DESeq2Analyzer",
]
