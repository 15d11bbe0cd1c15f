"""
Main differential expression coordinator
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from ..config import Config, SampleGroupRules
from ..exceptions import DifferentialAnalysisError
from ..utils import RInterface, get_logger
from .comparison import ComparisonData, prepare_comparison
from .methods import RESULT_COLUMNS, DESeq2Analyzer, PyDESeq2Analyzer

logger = get_logger(__name__)

UP = "Up-regulated"
DOWN = "Down-regulated"
NOT_SIGNIFICANT = "Not Significant"


@dataclass
class DifferentialResult:
    """Result of a Control vs Methylated differential expression run"""

    method: str
    success: bool

    # Results data, indexed by gene
    results_table: Optional[pd.DataFrame] = None
    groups: Optional[pd.Series] = None
    excluded_samples: Dict[str, List[str]] = field(default_factory=dict)

    # Statistics
    n_tested: Optional[int] = None
    n_significant: Optional[int] = None
    n_up_regulated: Optional[int] = None
    n_down_regulated: Optional[int] = None
    fdr_threshold: float = 0.05

    # Files
    output_files: Dict[str, Path] = field(default_factory=dict)

    # Execution info
    execution_time: Optional[float] = None
    error_message: Optional[str] = None


def classify_results(
    results: pd.DataFrame, fdr_threshold: float = 0.05, logfc_threshold: float = 0.0
) -> pd.DataFrame:
    """Add 'significant' (padj < fdr_threshold) and 'regulation' columns"""
    significant = (results["padj"] < fdr_threshold).fillna(False).astype(bool)
    up = significant & (results["log2FoldChange"] > logfc_threshold)
    down = significant & (results["log2FoldChange"] < -logfc_threshold)
    regulation = np.select([up, down], [UP, DOWN], default=NOT_SIGNIFICANT)
    return results.assign(significant=significant, regulation=regulation)


def drop_untested(results: pd.DataFrame) -> pd.DataFrame:
    """Remove genes whose log2FoldChange or padj is undefined"""
    tested = results["log2FoldChange"].notna() & results["padj"].notna()
    if (~tested).any():
        logger.info(f"Dropping {(~tested).sum()} genes without a fold change or adjusted p-value")
    return results.loc[tested]


def filter_low_counts(counts: pd.DataFrame, min_counts: int) -> pd.DataFrame:
    """Keep genes whose total count over the compared samples reaches min_counts"""
    keep = counts.sum(axis=1) >= min_counts
    logger.info(f"Low-count filter (total >= {min_counts}): {keep.sum()} of {len(counts)} genes kept")
    return counts.loc[keep]


class DifferentialExpressionRunner:
    """Run the Control vs Methylated comparison with the configured method"""

    def __init__(self, config: Config, r_interface: Optional[RInterface] = None):
        self.config = config
        self.diff_params = config.differential

        self.output_dir = Path(config.output_dir) / "differential"
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.rules = SampleGroupRules.from_config(self.diff_params.get("sample_groups"))

        self.r_interface = r_interface or RInterface(config.r_config)
        self.analyzers = {
            "pydeseq2": PyDESeq2Analyzer(config),
            "DESeq2": DESeq2Analyzer(config, self.r_interface),
        }

    def prepare(self, counts: pd.DataFrame) -> ComparisonData:
        """Group samples and apply the low-count prefilter"""
        data = prepare_comparison(counts, self.rules)
        filtered = filter_low_counts(data.counts, self.diff_params.get("min_counts", 10))
        return ComparisonData(counts=filtered, groups=data.groups, excluded=data.excluded)

    def run(self, counts: pd.DataFrame, method: Optional[str] = None) -> DifferentialResult:
        """
        Run differential expression on a genes x samples count matrix

        Args:
            counts: Count matrix indexed by gene
            method: 'pydeseq2' or 'DESeq2'; defaults to the configured method

        Returns:
            DifferentialResult with a results table indexed by gene

        Raises:
            EmptyGroupError: a comparison group has no samples
            DifferentialAnalysisError: the backend failed
        """
        method = method or self.diff_params.get("method", "pydeseq2")
        if method not in self.analyzers:
            raise ValueError(f"Unknown method: {method}. Available: {list(self.analyzers)}")

        logger.info(f"Running differential expression with {method}")
        start_time = time.time()

        data = self.prepare(counts)

        try:
            results = self.analyzers[method].run_analysis(data, self.output_dir)
        except DifferentialAnalysisError:
            raise
        except (OSError, ValueError, np.linalg.LinAlgError) as e:
            raise DifferentialAnalysisError(f"{method} failed: {e}") from e

        fdr_threshold = self.diff_params.get("fdr_threshold", 0.05)
        results = classify_results(
            results[RESULT_COLUMNS],
            fdr_threshold=fdr_threshold,
            logfc_threshold=self.diff_params.get("logfc_threshold", 0.0),
        )
        results.index.name = "gene"

        result = DifferentialResult(
            method=method,
            success=True,
            results_table=results,
            groups=data.groups,
            excluded_samples=data.excluded,
            n_tested=int(results["padj"].notna().sum()),
            n_significant=int(results["significant"].sum()),
            n_up_regulated=int((results["regulation"] == UP).sum()),
            n_down_regulated=int((results["regulation"] == DOWN).sum()),
            fdr_threshold=fdr_threshold,
            execution_time=time.time() - start_time,
        )
        result.output_files.update(self._save_results(result))

        logger.info(
            f"{method} completed: {result.n_significant} significant of {result.n_tested} tested "
            f"({result.n_up_regulated} up, {result.n_down_regulated} down)"
        )
        return result

    def _save_results(self, result: DifferentialResult) -> Dict[str, Path]:
        """Save analysis results to files"""

        output_files = {}
        base_filename = f"methylated_vs_control_{result.method}"

        results_file = self.output_dir / f"{base_filename}_results.csv"
        result.results_table.to_csv(results_file)
        output_files["results"] = results_file

        if result.n_significant:
            sig_file = self.output_dir / f"{base_filename}_significant.csv"
            result.results_table[result.results_table["significant"]].to_csv(sig_file)
            output_files["significant"] = sig_file

        groups_file = self.output_dir / "sample_groups.csv"
        result.groups.rename_axis("sample").to_csv(groups_file)
        output_files["groups"] = groups_file

        logger.info(f"Results saved: {len(output_files)} files for {base_filename}")
        return output_files
