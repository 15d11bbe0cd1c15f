"""
Region to gene association

Each methylated region is linked to its nearest promoter, joined to the
differential expression result of that promoter's gene and extended with
the derived columns used by Figure 5: delta methylation, fold change, the
A-value and its quantile bin.

Every step is a function taking a DataFrame and returning a new one, so the
chain can be run, inspected or tested one step at a time.
"""

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..utils import get_logger, require_columns
from .intervals import annotate_nearest

logger = get_logger(__name__)

EXPRESSION_COLUMNS = ["baseMean", "log2FoldChange", "padj"]


def nearest_promoters(
    regions: pd.DataFrame, promoters: pd.DataFrame, max_distance: int = 2000
) -> pd.DataFrame:
    """
    Attach the nearest promoter to every region within ``max_distance``

    A distance equal to the cutoff is kept. Regions beyond it, regions on
    chromosomes without promoters and regions whose nearest promoter has no
    gene symbol are dropped.
    """
    require_columns(promoters, ["chrom", "start", "end", "symbol"], "Promoter table")

    annotated = annotate_nearest(
        regions,
        promoters,
        id_column="symbol",
        columns={
            "nearest_id": "promoter_symbol",
            "nearest_start": "promoter_start",
            "nearest_end": "promoter_end",
            "distance": "promoter_distance",
        },
    )

    within = annotated["promoter_distance"] <= max_distance
    logger.info(
        f"{within.sum()} of {len(annotated)} regions within {max_distance} bp of a promoter"
    )
    annotated = annotated.loc[within]

    symbol = annotated["promoter_symbol"]
    has_symbol = symbol.notna() & (symbol.astype(str).str.strip() != "")
    if (~has_symbol).any():
        logger.info(f"Dropping {(~has_symbol).sum()} associations without a gene symbol")
    return annotated.loc[has_symbol]


def join_expression(associations: pd.DataFrame, expression: pd.DataFrame) -> pd.DataFrame:
    """
    Inner-join expression results (indexed by gene symbol) onto associations

    Adds every expression column plus ``fold_change = 2 ** log2FoldChange``.
    """
    require_columns(expression, EXPRESSION_COLUMNS, "Expression results")

    clashing = [col for col in expression.columns if col in associations.columns]
    if clashing:
        raise ValueError(f"Expression columns clash with region columns: {clashing}")

    keyed = expression.rename_axis("_symbol").reset_index()
    joined = associations.merge(
        keyed, how="inner", left_on="promoter_symbol", right_on="_symbol", sort=False
    ).drop(columns="_symbol")
    logger.info(
        f"{len(joined)} of {len(associations)} associations have an expression result"
    )
    return joined.assign(fold_change=np.power(2.0, joined["log2FoldChange"]))


def add_delta_methylation(
    associations: pd.DataFrame,
    delta_column: Optional[str] = None,
    treated_column: Optional[str] = None,
    control_column: Optional[str] = None,
) -> pd.DataFrame:
    """
    Add ``delta_methylation``

    Uses ``delta_column`` directly when given (the UMR table carries one),
    otherwise ``treated_column - control_column``.
    """
    if delta_column is not None:
        require_columns(associations, [delta_column], "Region table")
        delta = associations[delta_column].astype(float)
    elif treated_column is not None and control_column is not None:
        require_columns(associations, [treated_column, control_column], "Region table")
        delta = associations[treated_column].astype(float) - associations[control_column].astype(float)
    else:
        raise ValueError("Need either delta_column or both treated_column and control_column")

    return associations.assign(delta_methylation=delta)


def add_a_value(associations: pd.DataFrame) -> pd.DataFrame:
    """Add the A-value: 0.5 * (log2(baseMean) + log2(fold_change * baseMean))"""
    base = associations["baseMean"].astype(float)
    with np.errstate(divide="ignore", invalid="ignore"):
        a_value = 0.5 * (np.log2(base) + np.log2(associations["fold_change"] * base))
    return associations.assign(A=a_value)


def quantile_bin(values: pd.Series, n_bins: int = 9) -> pd.Series:
    """
    Split values into ``n_bins`` equal-count groups labelled 1..n_bins

    Values are ranked with ties kept in input order, so every bin size
    differs from every other by at most one.
    """
    if n_bins < 1:
        raise ValueError("n_bins must be positive")
    n = len(values)
    if n == 0:
        return pd.Series([], index=values.index, dtype="int64")

    ranks = values.rank(method="first").to_numpy()
    bins = np.floor((ranks - 1) * n_bins / n).astype(np.int64) + 1
    return pd.Series(bins, index=values.index, name="A_bin")


def drop_non_finite(associations: pd.DataFrame, columns) -> pd.DataFrame:
    finite = np.isfinite(associations[list(columns)].astype(float)).all(axis=1)
    if (~finite).any():
        logger.info(f"Dropping {(~finite).sum()} associations with non-finite {list(columns)}")
    return associations.loc[finite]


def collapse_to_gene(associations: pd.DataFrame) -> pd.DataFrame:
    """Keep one region per gene: the closest, ties going to the lower start"""
    ranked = associations.sort_values(["promoter_distance", "start"], kind="mergesort")
    kept = ranked.drop_duplicates(subset="promoter_symbol", keep="first")
    if len(kept) < len(associations):
        logger.info(
            f"Collapsed {len(associations)} associations to {len(kept)} (one region per gene)"
        )
    return kept.sort_index()


class RegionGeneAssociator:
    """Associate region tables with promoters and expression results"""

    def __init__(self, max_distance: int = 2000, n_a_bins: int = 9, one_region_per_gene: bool = True):
        """
        Initialize associator

        Args:
            max_distance: Largest region to promoter distance kept (bases)
            n_a_bins: Number of A-value quantile bins
            one_region_per_gene: Keep only the closest region for each gene
        """
        self.max_distance = max_distance
        self.n_a_bins = n_a_bins
        self.one_region_per_gene = one_region_per_gene

    @classmethod
    def from_config(cls, genomics: Dict[str, Any]) -> "RegionGeneAssociator":
        params = genomics.get("association", {})
        return cls(
            max_distance=params.get("max_distance", 2000),
            n_a_bins=params.get("n_a_bins", 9),
            one_region_per_gene=params.get("one_region_per_gene", True),
        )

    def associate(
        self,
        regions: pd.DataFrame,
        promoters: pd.DataFrame,
        expression: pd.DataFrame,
        delta_column: Optional[str] = None,
        treated_column: Optional[str] = None,
        control_column: Optional[str] = None,
    ) -> pd.DataFrame:
        """
        Run the association chain

        Args:
            regions: Region table (chrom, start, end, methylation columns)
            promoters: Promoter windows with a 'symbol' column
            expression: Differential expression results indexed by gene
            delta_column: Column already holding treated - control
            treated_column: Methylation column of the treated condition
            control_column: Methylation column of the control condition

        Returns:
            One row per associated region with delta_methylation,
            fold_change, A and A_bin added; every row has finite
            delta_methylation, A and log2FoldChange.
        """
        logger.info(f"Associating {len(regions)} regions with {len(promoters)} promoters")

        associations = nearest_promoters(regions, promoters, self.max_distance)
        associations = join_expression(associations, expression)
        associations = add_delta_methylation(
            associations,
            delta_column=delta_column,
            treated_column=treated_column,
            control_column=control_column,
        )
        associations = drop_non_finite(associations, ["delta_methylation", "log2FoldChange"])

        if self.one_region_per_gene:
            associations = collapse_to_gene(associations)

        associations = add_a_value(associations)
        associations = drop_non_finite(associations, ["A"])
        associations = associations.assign(A_bin=quantile_bin(associations["A"], self.n_a_bins))

        logger.info(f"Final associations: {len(associations)}")
        return associations.reset_index(drop=True)
