"""
Small DataFrame helpers shared by the loaders and genomic operations
"""

from typing import Iterable

import pandas as pd

STANDARD_CHROMOSOMES = [str(i) for i in range(1, 23)] + ["X", "Y"]


def standardize_chromosomes(chroms: pd.Series) -> pd.Series:
    """Strip the 'chr' prefix so that 'chr7' and '7' compare equal"""
    return chroms.astype(str).str.strip().str.replace(r"^chr", "", regex=True)


def make_region_ids(regions: pd.DataFrame) -> pd.Series:
    """Build 'chrom:start-end' identifiers for a region table"""
    return (
        regions["chrom"].astype(str)
        + ":"
        + regions["start"].astype(str)
        + "-"
        + regions["end"].astype(str)
    )


def require_columns(df: pd.DataFrame, columns: Iterable[str], what: str) -> None:
    """Raise KeyError naming the missing columns"""
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise KeyError(f"{what} is missing required columns: {missing}")
