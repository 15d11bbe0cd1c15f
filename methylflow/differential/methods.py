"""
Differential expression methods (PyDESeq2, DESeq2 through Rscript)

Both methods take the comparison counts (genes x samples) with their
Control / Methylated assignment and return a table indexed by gene with the
columns baseMean, log2FoldChange, lfcSE, stat, pvalue and padj.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from pydeseq2.dds import DeseqDataSet
from pydeseq2.default_inference import DefaultInference
from pydeseq2.ds import DeseqStats

from ..config import CONTROL_GROUP, TREATED_GROUP
from ..exceptions import DifferentialAnalysisError
from ..utils import RInterface, get_logger, log_execution_time
from .comparison import ComparisonData

logger = get_logger(__name__)

RESULT_COLUMNS = ["baseMean", "log2FoldChange", "lfcSE", "stat", "pvalue", "padj"]

DISPERSION_KEYS = ["genewise_dispersions", "fitted_dispersions", "dispersions"]


class BaseAnalyzer(ABC):
    """Base class for differential expression methods"""

    name = "base"

    def __init__(self, config, r_interface: Optional[RInterface] = None):
        self.config = config
        self.r_interface = r_interface
        self.diff_params = config.differential

    @abstractmethod
    def run_analysis(self, data: ComparisonData, output_dir: Path) -> pd.DataFrame:
        """Fit the model and return per-gene statistics"""


class PyDESeq2Analyzer(BaseAnalyzer):
    """DESeq2 in Python with pydeseq2"""

    name = "pydeseq2"

    @log_execution_time
    def run_analysis(self, data: ComparisonData, output_dir: Path) -> pd.DataFrame:
        logger.info(f"Starting PyDESeq2 analysis of {data.counts.shape[0]} genes")

        # pydeseq2 wants samples as rows, genes as columns
        counts = data.counts.T.round().astype(int)
        metadata = pd.DataFrame(
            {"condition": data.groups.loc[counts.index].astype(str)}, index=counts.index
        )

        inference = DefaultInference(n_cpus=self.diff_params.get("n_cpus", 1))
        quiet = not self.diff_params.get("show_progress", True)

        try:
            dds = DeseqDataSet(
                counts=counts,
                metadata=metadata,
                design="~condition",
                refit_cooks=self.diff_params.get("refit_cooks", True),
                inference=inference,
                quiet=quiet,
            )
            dds.deseq2()

            stats = DeseqStats(
                dds,
                contrast=["condition", TREATED_GROUP, CONTROL_GROUP],
                alpha=self.diff_params.get("fdr_threshold", 0.05),
                cooks_filter=self.diff_params.get("cooks_filter", True),
                independent_filter=self.diff_params.get("independent_filtering", True),
                inference=inference,
                quiet=quiet,
            )
            stats.summary()
        except (ValueError, KeyError, RuntimeError, np.linalg.LinAlgError) as e:
            raise DifferentialAnalysisError(f"PyDESeq2 failed: {e}") from e

        self._save_model_tables(dds, output_dir)

        results = stats.results_df.reindex(data.counts.index)
        missing_cols = [col for col in RESULT_COLUMNS if col not in results.columns]
        if missing_cols:
            raise DifferentialAnalysisError(f"Missing columns in PyDESeq2 results: {missing_cols}")
        return results[RESULT_COLUMNS]

    @staticmethod
    def _save_model_tables(dds: DeseqDataSet, output_dir: Path) -> None:
        """Write size factors and dispersion estimates next to the results"""
        size_factors = pd.Series(
            np.asarray(dds.obs["size_factors"]), index=dds.obs_names, name="size_factor"
        )
        size_factors.rename_axis("sample").to_csv(output_dir / "pydeseq2_size_factors.csv")

        dispersions = pd.DataFrame(index=pd.Index(dds.var_names, name="gene"))
        for key in DISPERSION_KEYS:
            if key in dds.varm:
                dispersions[key] = np.asarray(dds.varm[key])
        dispersions.to_csv(output_dir / "pydeseq2_dispersions.csv")


class DESeq2Analyzer(BaseAnalyzer):
    """DESeq2 through Rscript"""

    name = "DESeq2"

    def __init__(self, config, r_interface: Optional[RInterface] = None):
        super().__init__(config, r_interface or RInterface(config.r_config))
        self.r_packages = list(config.r_config.get("required_packages", ["DESeq2"]))

    def run_analysis(self, data: ComparisonData, output_dir: Path) -> pd.DataFrame:
        logger.info("Starting DESeq2 analysis")

        status = self.r_interface.check_packages(self.r_packages)
        missing = [pkg for pkg, ok in status.items() if not ok]
        if missing:
            raise DifferentialAnalysisError(f"Missing R packages: {missing}")

        working_dir = output_dir / "deseq2"
        working_dir.mkdir(parents=True, exist_ok=True)

        counts_file = working_dir / "counts.csv"
        coldata_file = working_dir / "coldata.csv"
        data.counts.rename_axis("gene").to_csv(counts_file)
        data.groups.rename_axis("sample").rename("condition").to_frame().to_csv(coldata_file)

        r_script = self._create_deseq2_script(counts_file, coldata_file)
        result = self.r_interface.run_script(r_script, working_dir=working_dir)

        if not result["success"]:
            raise DifferentialAnalysisError(f"DESeq2 failed: {result.get('error') or 'unknown R error'}")

        return self._parse_deseq2_results(result)

    def _create_deseq2_script(self, counts_file: Path, coldata_file: Path) -> str:
        """Create R script for DESeq2 analysis"""

        alpha = self.diff_params.get("fdr_threshold", 0.05)
        independent = "TRUE" if self.diff_params.get("independent_filtering", True) else "FALSE"

        r_script = f"""
suppressPackageStartupMessages(library(DESeq2))

counts <- read.csv("{counts_file.as_posix()}", row.names = 1, check.names = FALSE)
coldata <- read.csv("{coldata_file.as_posix()}", row.names = 1, check.names = FALSE)
counts <- round(as.matrix(counts[, rownames(coldata)]))

coldata$condition <- relevel(factor(coldata$condition), ref = "Control")

dds <- DESeqDataSetFromMatrix(countData = counts, colData = coldata, design = ~ condition)
dds <- DESeq(dds)

res <- results(dds,
               contrast = c("condition", "Methylated", "Control"),
               alpha = {alpha},
               independentFiltering = {independent})

res_df <- as.data.frame(res)
res_df$gene <- rownames(res_df)
res_df <- res_df[, c("gene", "baseMean", "log2FoldChange", "lfcSE", "stat", "pvalue", "padj")]

write.csv(res_df, "deseq2_results.csv", row.names = FALSE)
cat("DESeq2 analysis completed successfully\\n")
"""
        return r_script

    def _parse_deseq2_results(self, r_result: Dict[str, Any]) -> pd.DataFrame:
        """Parse DESeq2 results written by the R script"""

        results_file = Path(r_result.get("working_dir", ".")) / "deseq2_results.csv"
        if not results_file.exists():
            raise DifferentialAnalysisError("DESeq2 results file not found")

        results_df = pd.read_csv(results_file, dtype={"gene": str})

        missing_cols = [col for col in ["gene"] + RESULT_COLUMNS if col not in results_df.columns]
        if missing_cols:
            raise DifferentialAnalysisError(f"Missing columns in DESeq2 results: {missing_cols}")

        return results_df.set_index("gene")[RESULT_COLUMNS]
