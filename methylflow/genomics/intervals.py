"""
Interval overlap and nearest-region joins between region tables

Regions are half-open ``[start, end)`` intervals. Two regions overlap when
they share at least one base; bookended regions do not overlap but are at
distance 0. The joins themselves run on bioframe. Among several regions of B
at the same nearest distance the one with the lower start wins, then the
lower end, then the earlier input row, whatever order the inputs come in.
"""

from typing import Dict, Optional

import bioframe as bf
import numpy as np
import pandas as pd

from ..utils import get_logger, require_columns, standardize_chromosomes

logger = get_logger(__name__)

BED_COLUMNS = ["chrom", "start", "end"]
NEAREST_COLUMNS = ["nearest_id", "nearest_start", "nearest_end", "distance"]


def to_bedframe(regions: pd.DataFrame, what: str = "Regions") -> pd.DataFrame:
    """
    Minimal bedframe of a region table

    Chromosome names lose their 'chr' prefix, coordinates become int64 and
    the index is reset, so row labels of the result are input positions.
    """
    require_columns(regions, BED_COLUMNS, what)
    return pd.DataFrame(
        {
            "chrom": standardize_chromosomes(regions["chrom"]).to_numpy(dtype=object),
            "start": regions["start"].to_numpy(dtype=np.int64),
            "end": regions["end"].to_numpy(dtype=np.int64),
        }
    )


def _pair_positions(pairs: pd.DataFrame):
    """Query and target positions of a bioframe join with return_index"""
    pairs = pairs.dropna(subset=["index", "index_"])
    return (
        pairs["index"].to_numpy(dtype=np.int64),
        pairs["index_"].to_numpy(dtype=np.int64),
        pairs,
    )


def gap_distance(a_start, a_end, b_start, b_end) -> np.ndarray:
    """Bases between two half-open intervals, 0 when they overlap or touch"""
    return np.maximum(0, np.maximum(np.asarray(b_start) - a_end, np.asarray(a_start) - b_end))


def overlap_mask(regions_a: pd.DataFrame, regions_b: pd.DataFrame) -> pd.Series:
    """True for each region of A that intersects at least one region of B"""
    a = to_bedframe(regions_a, "Query regions")
    b = to_bedframe(regions_b, "Target regions")

    hit = np.zeros(len(a), dtype=bool)
    if len(a) and len(b):
        pairs = bf.overlap(a, b, how="inner", return_input=False, return_index=True)
        query, _, _ = _pair_positions(pairs)
        hit[query] = True

    return pd.Series(hit, index=regions_a.index, name="overlaps")


def overlap_fraction(regions_a: pd.DataFrame, regions_b: pd.DataFrame) -> float:
    """
    Fraction of A's regions overlapping at least one region of B

    Returns 0.0 for an empty A.
    """
    if len(regions_a) == 0:
        return 0.0
    return float(overlap_mask(regions_a, regions_b).mean())


def _tied_candidates(a: pd.DataFrame, b: pd.DataFrame) -> pd.DataFrame:
    """
    Every region of B at the minimum distance from each query

    bioframe.closest gives the minimum distance ``d`` per query. A region of
    B lies within ``d`` of ``[s, e)`` exactly when it overlaps
    ``[s - d - 1, e + d + 1)``, so one more overlap join recovers all tied
    candidates rather than the single one closest picked.
    """
    closest = bf.closest(a, b, k=1, return_input=False, return_index=True, return_distance=True)
    query, _, closest = _pair_positions(closest)
    pad = closest["distance"].to_numpy(dtype=np.int64) + 1

    windows = pd.DataFrame(
        {
            "chrom": a["chrom"].to_numpy()[query],
            "start": a["start"].to_numpy()[query] - pad,
            "end": a["end"].to_numpy()[query] + pad,
        }
    )
    pairs = bf.overlap(windows, b, how="inner", return_input=False, return_index=True)
    window, target, _ = _pair_positions(pairs)

    candidates = pd.DataFrame({"query": query[window], "target": target})
    candidates["start"] = b["start"].to_numpy()[target]
    candidates["end"] = b["end"].to_numpy()[target]
    rows = candidates["query"].to_numpy()
    candidates["distance"] = gap_distance(
        a["start"].to_numpy()[rows],
        a["end"].to_numpy()[rows],
        candidates["start"].to_numpy(),
        candidates["end"].to_numpy(),
    )
    return candidates


def nearest_distance(
    regions_a: pd.DataFrame, regions_b: pd.DataFrame, id_column: Optional[str] = None
) -> pd.DataFrame:
    """
    Nearest region of B for each region of A

    Args:
        regions_a: Query regions with 'chrom', 'start', 'end'
        regions_b: Target regions with 'chrom', 'start', 'end'
        id_column: Column identifying B's regions; B's index is used when omitted

    Returns:
        DataFrame aligned to ``regions_a.index`` with 'nearest_id',
        'nearest_start', 'nearest_end' and 'distance' (0 when overlapping).
        Regions of A on a chromosome without any region of B get NaN.
    """
    if id_column is not None:
        require_columns(regions_b, [id_column], "Target regions")

    a = to_bedframe(regions_a, "Query regions")
    b = to_bedframe(regions_b, "Target regions")

    n = len(a)
    nearest_id = np.full(n, None, dtype=object)
    nearest_start = np.full(n, np.nan)
    nearest_end = np.full(n, np.nan)
    distance = np.full(n, np.nan)

    if n and len(b):
        candidates = _tied_candidates(a, b)
        best = candidates.sort_values(
            ["query", "distance", "start", "end", "target"], kind="mergesort"
        ).drop_duplicates("query")

        ids = (regions_b[id_column] if id_column else regions_b.index.to_series()).to_numpy()
        rows = best["query"].to_numpy()
        nearest_id[rows] = ids[best["target"].to_numpy()]
        nearest_start[rows] = best["start"].to_numpy()
        nearest_end[rows] = best["end"].to_numpy()
        distance[rows] = best["distance"].to_numpy()

        logger.debug(f"Nearest regions found for {len(best)} of {n} queries")

    return pd.DataFrame(
        dict(zip(NEAREST_COLUMNS, [nearest_id, nearest_start, nearest_end, distance])),
        index=regions_a.index,
    )


def annotate_nearest(
    regions_a: pd.DataFrame,
    regions_b: pd.DataFrame,
    id_column: Optional[str] = None,
    columns: Optional[Dict[str, str]] = None,
) -> pd.DataFrame:
    """
    Return A with the nearest region of B attached

    Args:
        regions_a: Query regions
        regions_b: Target regions
        id_column: Identifier column of B
        columns: Optional renames for the nearest columns, e.g.
            ``{"nearest_id": "promoter_symbol", "distance": "promoter_distance"}``

    Returns:
        New DataFrame; A is not modified
    """
    nearest = nearest_distance(regions_a, regions_b, id_column=id_column)
    if columns:
        nearest = nearest.rename(columns=columns)

    clashing = [col for col in nearest.columns if col in regions_a.columns]
    if clashing:
        raise ValueError(f"Nearest columns would overwrite existing columns: {clashing}")

    return regions_a.assign(**{col: nearest[col] for col in nearest.columns})
