"""
Core MethylFlow analysis orchestrator
"""

import json
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from .config import (Config, PathConfig, load_config, validate_config,
                     validate_paths)
from .differential import DifferentialExpressionRunner, drop_untested
from .exceptions import MethylFlowError
from .genomics import (CategoryBinner, PromoterAnnotation,
                       RegionGeneAssociator, overlap_fraction)
from .tables import SourceFetcher, TableLoader
from .utils import (get_logger, setup_logging, validate_environment,
                    validate_output_permissions)
from .visualization import Figure5Plotter

logger = get_logger(__name__)

PIPELINE_STEPS = [
    "load_tables",
    "differential_expression",
    "promoters",
    "association",
    "binning",
    "visualization",
]


class MethylFlowAnalysis:
    """
    Main orchestrator for the Figure 5 re-derivation

    Steps run strictly in sequence, each reading only what earlier steps
    produced: source tables, differential expression, promoter annotation,
    region to gene association, fold-change categories and the charts.
    """

    def __init__(
        self,
        config: Union[str, Path, Config, Dict[str, Any]],
        log_level: str = "INFO",
        log_file: Optional[Union[str, Path]] = None,
        fetcher: Optional[SourceFetcher] = None,
        configure_logging: bool = True,
    ):
        """
        Initialize MethylFlow analysis

        Args:
            config: Configuration file path, Config object, or config dict
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional log file path
            fetcher: Source fetcher; built from the configuration if omitted
            configure_logging: Install the console/file log handlers
        """
        if configure_logging:
            setup_logging(level=log_level, log_file=log_file)
        logger.info("Initializing MethylFlow pipeline")

        if isinstance(config, (str, Path)):
            self.config = load_config(config)
        elif isinstance(config, dict):
            self.config = Config(**config)
        elif isinstance(config, Config):
            self.config = config
        else:
            raise ValueError("Invalid config type. Expected str, Path, dict, or Config object")

        self.paths = PathConfig.from_config(self.config)
        self._validate_environment()

        self.fetcher = fetcher or SourceFetcher(
            self.paths.raw_dir,
            self.config.sources,
            show_progress=self.config.tables.get("show_progress", True),
        )
        self._initialize_components()

        self.results: Dict[str, Any] = {}
        self.execution_times: Dict[str, float] = {}

        # Intermediate tables, filled as steps run
        self.tables: Dict[str, pd.DataFrame] = {}
        self.expression: Optional[pd.DataFrame] = None
        self.promoters: Optional[pd.DataFrame] = None
        self.associations: Dict[str, pd.DataFrame] = {}
        self.classified: Dict[str, pd.DataFrame] = {}
        self.summaries: Dict[str, Any] = {}

    def _validate_environment(self) -> None:
        """Validate that the environment is properly set up"""

        logger.info("Validating environment...")

        issues = validate_config(self.config)
        if issues:
            logger.warning("Configuration issues found:")
            for issue in issues:
                logger.warning(f"  - {issue}")

        env_issues = validate_environment(self.config.differential.get("method", "pydeseq2"))
        if env_issues:
            logger.warning("Environment issues found:")
            for issue in env_issues:
                logger.warning(f"  - {issue}")

        path_status = validate_paths(self.paths)
        for issue in path_status["issues"]:
            logger.warning(f"  - {issue}")
        if not validate_output_permissions(self.paths.output_dir):
            logger.warning(f"Output directory {self.paths.output_dir} is not writable")

    def _initialize_components(self) -> None:
        """Initialize analysis components"""

        self.table_loader = TableLoader(self.config, fetcher=self.fetcher)
        self.de_runner = DifferentialExpressionRunner(self.config)
        self.promoter_annotation = PromoterAnnotation(self.config, fetcher=self.fetcher)
        self.associator = RegionGeneAssociator.from_config(self.config.genomics)
        self.binner = CategoryBinner.from_config(self.config.binning)
        self.plotter = Figure5Plotter(
            self.paths.get_output_subdir("figures"), self.config.visualization
        )

    def run_full_pipeline(self, steps: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Run the complete pipeline

        Args:
            steps: Steps to run, in order; all steps by default

        Returns:
            Dictionary of step name -> step result

        Raises:
            MethylFlowError: a fatal error in any step (logged, then re-raised)
        """
        logger.info("=" * 60)
        logger.info("Starting MethylFlow Figure 5 pipeline")
        logger.info("=" * 60)

        start_time = time.time()
        steps = steps or PIPELINE_STEPS

        step_functions = {
            "load_tables": self.run_load_tables,
            "differential_expression": self.run_differential_expression,
            "promoters": self.run_promoters,
            "association": self.run_association,
            "binning": self.run_binning,
            "visualization": self.run_visualization,
        }

        for step in steps:
            if step not in step_functions:
                raise ValueError(f"Unknown pipeline step: {step}")

            step_start = time.time()
            logger.info(f"{'=' * 20} STEP: {step.upper()} {'=' * 20}")

            try:
                self.results[step] = step_functions[step]()
            except MethylFlowError as e:
                self.results[step] = {"success": False, "error": str(e)}
                self.execution_times[step] = time.time() - step_start
                logger.error(f"Step {step} failed: {e}")
                self._create_pipeline_summary()
                raise

            step_time = time.time() - step_start
            self.execution_times[step] = step_time
            logger.info(f"Step {step} completed in {step_time:.2f} seconds")

        self.execution_times["total"] = time.time() - start_time
        self._create_pipeline_summary()

        logger.info("=" * 60)
        logger.info(f"MethylFlow pipeline completed in {self.execution_times['total']:.2f} seconds")
        logger.info("=" * 60)

        return self.results

    def run_load_tables(self) -> Dict[str, Any]:
        """Load every source table and compute region overlap fractions"""

        self.tables = self.table_loader.load_all()

        overlaps = {}
        for query, target in self.config.genomics.get("overlaps", []):
            if query in self.tables and target in self.tables:
                fraction = overlap_fraction(self.tables[query], self.tables[target])
                overlaps[f"{query}_in_{target}"] = fraction
                logger.info(f"Fraction of {query} overlapping {target}: {fraction:.3f}")

        return {
            "success": True,
            "rows": {table_id: len(table) for table_id, table in self.tables.items()},
            "overlaps": overlaps,
        }

    def run_differential_expression(self) -> Dict[str, Any]:
        """Run Methylated vs Control differential expression"""

        if "counts" not in self.tables:
            self.tables["counts"] = self.table_loader.load_counts()

        de_result = self.de_runner.run(self.tables["counts"])
        self.expression = drop_untested(de_result.results_table)

        return {
            "success": de_result.success,
            "method": de_result.method,
            "n_tested": de_result.n_tested,
            "n_significant": de_result.n_significant,
            "n_up_regulated": de_result.n_up_regulated,
            "n_down_regulated": de_result.n_down_regulated,
            "excluded_samples": de_result.excluded_samples,
            "output_files": {k: str(v) for k, v in de_result.output_files.items()},
        }

    def run_promoters(self) -> Dict[str, Any]:
        """Build promoter windows from the reference annotation"""

        self.promoters = self.promoter_annotation.load_promoters()
        return {"success": True, "n_promoters": len(self.promoters)}

    def run_association(self) -> Dict[str, Any]:
        """Associate each region table with promoters and expression results"""

        if self.expression is None or self.promoters is None:
            raise RuntimeError("Differential expression and promoters must run before association")

        output_dir = self.paths.get_output_subdir("association")
        column_settings = self.config.genomics.get("methylation_columns", {})

        rows = {}
        for table_id in self.config.genomics.get("region_tables", ["umr"]):
            if table_id not in self.tables:
                self.tables[table_id] = self.table_loader.load(table_id)

            associations = self.associator.associate(
                self.tables[table_id],
                self.promoters,
                self.expression,
                **column_settings.get(table_id, {}),
            )
            self.associations[table_id] = associations
            associations.to_csv(output_dir / f"{table_id}_gene_associations.csv", index=False)
            rows[table_id] = len(associations)

        return {"success": True, "rows": rows}

    def run_binning(self) -> Dict[str, Any]:
        """Classify fold changes of robustly methylated regions"""

        if not self.associations:
            raise RuntimeError("Association must run before binning")

        headline = self.config.binning.get("headline_table", "umr")

        for table_id, associations in self.associations.items():
            classified = self.binner.classify(associations)
            self.classified[table_id] = classified
            self.summaries[table_id] = self.binner.summarize(classified)

        if headline in self.associations:
            log2_classified = self.binner.classify_log2(self.associations[headline])
            self.summaries[f"{headline}_log2"] = self.binner.summarize(
                log2_classified, bin_column="log2_bin"
            )

        self._save_summary(headline)

        result = {"success": True, "headline_table": headline}
        if headline in self.summaries:
            result["class_percentages"] = self.summaries[headline].class_percentages
            result["total"] = self.summaries[headline].total
        return result

    def run_visualization(self) -> Dict[str, Any]:
        """Render Figure 5 panels and diagnostics"""

        headline = self.config.binning.get("headline_table", "umr")
        if headline not in self.associations or headline not in self.summaries:
            raise RuntimeError("Binning must run before visualization")

        comparison = {
            table_id: summary
            for table_id, summary in self.summaries.items()
            if table_id in self.associations
        }

        outputs = self.plotter.create_figure5(
            self.associations[headline],
            self.summaries[headline],
            threshold=self.binner.threshold_high,
            log2_summary=self.summaries.get(f"{headline}_log2"),
            comparison=comparison if len(comparison) > 1 else None,
            class_map=self.binner.class_map,
            charts_dir=self.paths.get_output_subdir("charts"),
        )
        return {"success": True, "outputs": {k: str(v) for k, v in outputs.items()}}

    def _save_summary(self, headline: str) -> None:
        """Write figure5_summary.json and figure5_summary.csv"""

        output_dir = Path(self.config.output_dir)

        summary_json = {
            "headline_table": headline,
            "threshold_high": self.binner.threshold_high,
            "summaries": {name: summary.to_dict() for name, summary in self.summaries.items()},
            "overlaps": self.results.get("load_tables", {}).get("overlaps", {}),
        }
        with open(output_dir / "figure5_summary.json", "w") as f:
            json.dump(summary_json, f, indent=2)

        frames = []
        for name, summary in self.summaries.items():
            frames.append(summary.to_frame().assign(table=name, total=summary.total))
        pd.concat(frames, ignore_index=True)[
            ["table", "effect_class", "count", "total", "percentage"]
        ].to_csv(output_dir / "figure5_summary.csv", index=False)

        logger.info(f"Figure 5 summary saved to {output_dir}")

    def _create_pipeline_summary(self) -> None:
        """Log and save the pipeline summary"""

        logger.info("=" * 50)
        logger.info("METHYLFLOW PIPELINE SUMMARY")
        logger.info("=" * 50)

        for step, exec_time in self.execution_times.items():
            if step != "total":
                logger.info(f"  {step}: {exec_time:.2f} seconds")
        logger.info(f"  TOTAL: {self.execution_times.get('total', 0):.2f} seconds")

        for step, result in self.results.items():
            status = "SUCCESS" if result.get("success") else "FAILED"
            logger.info(f"  {step}: {status}")
            if not result.get("success") and "error" in result:
                logger.info(f"    Error: {result['error']}")

        summary_file = Path(self.config.output_dir) / "pipeline_summary.txt"
        with open(summary_file, "w") as f:
            f.write("MethylFlow Pipeline Summary\n")
            f.write("=" * 30 + "\n\n")

            f.write("Configuration:\n")
            f.write(f"  Project: {self.config.project_name}\n")
            f.write(f"  Data directory: {self.config.data_dir}\n")
            f.write(f"  Output directory: {self.config.output_dir}\n")
            f.write(f"  Differential method: {self.config.differential.get('method')}\n\n")

            f.write("Execution Times:\n")
            for step, exec_time in self.execution_times.items():
                f.write(f"  {step}: {exec_time:.2f} seconds\n")

            f.write("\nResults:\n")
            for step, result in self.results.items():
                status = "SUCCESS" if result.get("success") else "FAILED"
                f.write(f"  {step}: {status}\n")

            headline = self.config.binning.get("headline_table", "umr")
            if headline in self.summaries:
                summary = self.summaries[headline]
                f.write(f"\nEffect classes ({headline}, n = {summary.total}):\n")
                for effect_class, pct in summary.class_percentages.items():
                    count = summary.class_counts[effect_class]
                    f.write(f"  {effect_class}: {count} ({pct:.1f}%)\n")

        logger.info(f"Pipeline summary saved to: {summary_file}")

    def get_results(self) -> Dict[str, Any]:
        """Get all pipeline results"""
        return self.results

    def get_execution_times(self) -> Dict[str, float]:
        """Get execution times for all steps"""
        return self.execution_times
