"""
Gene promoter annotation for MethylFlow

This module reads the UCSC refGene table, filters it to coding transcripts
on standard chromosomes, keeps one transcript per gene symbol and builds
strand-aware promoter windows around each TSS.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd

from ..config import Config, PathConfig
from ..tables.download import SourceFetcher
from ..utils import STANDARD_CHROMOSOMES, get_logger, make_region_ids

logger = get_logger(__name__)

REFGENE_COLUMNS = ["name", "chrom", "strand", "txStart", "txEnd", "name2"]
PROMOTER_COLUMNS = ["chrom", "start", "end", "symbol", "strand", "tss", "transcript"]


def read_refgene(path: Union[str, Path]) -> pd.DataFrame:
    """Read the transcript name, position and gene symbol columns of refGene"""
    return pd.read_csv(
        path,
        sep="\t",
        header=None,
        usecols=[1, 2, 3, 4, 5, 12],
        names=REFGENE_COLUMNS,
        dtype={"name": str, "chrom": str, "strand": str, "name2": str},
    )


def build_promoters(
    genes_df: pd.DataFrame,
    upstream: int = 2000,
    downstream: int = 200,
    allowed_prefixes=("NM_",),
    standard_chromosomes_only: bool = True,
    selection_method: str = "longest",
) -> pd.DataFrame:
    """
    Build one promoter window per gene symbol from refGene transcripts

    Args:
        genes_df: refGene rows with name, chrom, strand, txStart, txEnd, name2
        upstream: Bases upstream of the TSS included in the window
        downstream: Bases downstream of the TSS included in the window
        allowed_prefixes: Transcript accession prefixes to keep
        standard_chromosomes_only: Drop alt/random/unplaced contigs
        selection_method: 'longest' or 'first' transcript per symbol

    Returns:
        DataFrame with PROMOTER_COLUMNS plus 'region_id'
    """
    n_input = len(genes_df)
    genes = genes_df.loc[genes_df["name"].str.startswith(tuple(allowed_prefixes))]
    logger.info(f"After transcript filtering {list(allowed_prefixes)}: {len(genes)} of {n_input}")

    genes = genes.assign(chrom=genes["chrom"].str.replace(r"^chr", "", regex=True))
    if standard_chromosomes_only:
        genes = genes.loc[genes["chrom"].isin(STANDARD_CHROMOSOMES)]
        logger.info(f"After chromosome filtering: {len(genes)} entries")

    genes = genes.assign(transcript_length=genes["txEnd"] - genes["txStart"])

    if selection_method == "longest":
        selected = genes.groupby("name2", sort=False)["transcript_length"].idxmax()
        genes = genes.loc[selected.values]
    elif selection_method == "first":
        genes = genes.drop_duplicates(subset="name2", keep="first")
    else:
        raise ValueError(f"Unknown selection method: {selection_method}")
    logger.info(f"After gene symbol deduplication: {len(genes)} entries")

    plus = genes["strand"] == "+"
    tss = np.where(plus, genes["txStart"], genes["txEnd"])
    start = np.where(plus, tss - upstream, tss - downstream)
    end = np.where(plus, tss + downstream, tss + upstream)

    promoters = pd.DataFrame(
        {
            "chrom": genes["chrom"].values,
            "start": np.maximum(start, 0).astype(np.int64),
            "end": end.astype(np.int64),
            "symbol": genes["name2"].values,
            "strand": genes["strand"].values,
            "tss": tss.astype(np.int64),
            "transcript": genes["name"].values,
        }
    )
    promoters = promoters.assign(region_id=make_region_ids(promoters))

    strand_counts = promoters["strand"].value_counts().to_dict()
    logger.info(f"Built {len(promoters)} promoter windows (strands: {strand_counts})")
    return promoters


class PromoterAnnotation:
    """Promoter windows for the configured assembly"""

    def __init__(self, config: Config, fetcher: Optional[SourceFetcher] = None):
        """
        Initialize promoter annotation

        Args:
            config: MethylFlow configuration object
            fetcher: Source fetcher used to obtain refGene
        """
        self.config = config
        self.assembly = config.genomics.get("assembly", "hg19")
        self.promoter_params: Dict[str, Any] = config.genomics.get("promoters", {})

        if fetcher is None:
            paths = PathConfig.from_config(config)
            fetcher = SourceFetcher(
                paths.raw_dir, config.sources, show_progress=config.tables.get("show_progress", True)
            )
        self.fetcher = fetcher

        self._promoters: Optional[pd.DataFrame] = None

    def load_promoters(self, force_reload: bool = False) -> pd.DataFrame:
        """Load refGene and build promoter windows (cached per instance)"""
        if self._promoters is not None and not force_reload:
            logger.info("Using cached promoter annotations")
            return self._promoters

        path = self.fetcher.fetch("refgene")
        logger.info(f"Loading {self.assembly} refGene annotations from {path}")

        genes_df = read_refgene(path)
        logger.info(f"Initial annotations loaded: {len(genes_df)} transcripts")

        self._promoters = build_promoters(
            genes_df,
            upstream=self.promoter_params.get("upstream", 2000),
            downstream=self.promoter_params.get("downstream", 200),
            allowed_prefixes=tuple(self.promoter_params.get("allowed_prefixes", ["NM_"])),
            standard_chromosomes_only=self.promoter_params.get("standard_chromosomes_only", True),
            selection_method=self.promoter_params.get("selection_method", "longest"),
        )
        return self._promoters

    def get_promoter(self, symbol: str) -> Optional[Dict[str, Any]]:
        """Promoter record for a gene symbol, or None"""
        promoters = self.load_promoters()
        matches = promoters.loc[promoters["symbol"] == symbol]
        if matches.empty:
            return None
        return matches.iloc[0].to_dict()
