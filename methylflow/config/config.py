"""
Core configuration management for MethylFlow
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DATA_DIR_ENV_VAR = "METHYLFLOW_DATA_DIR"

CONFIG_SECTIONS = [
    "sources",
    "tables",
    "differential",
    "genomics",
    "binning",
    "visualization",
    "r_config",
]


@dataclass
class Config:
    """Main configuration class for a Figure 5 re-derivation run"""

    # General settings
    project_name: str = "MethylFlow_Figure5"

    # Input/Output paths
    data_dir: Optional[str] = None
    output_dir: Optional[str] = None

    # Analysis sections
    sources: Dict[str, Any] = field(default_factory=dict)
    tables: Dict[str, Any] = field(default_factory=dict)
    differential: Dict[str, Any] = field(default_factory=dict)
    genomics: Dict[str, Any] = field(default_factory=dict)
    binning: Dict[str, Any] = field(default_factory=dict)
    visualization: Dict[str, Any] = field(default_factory=dict)

    # R configuration (DESeq2 backend only)
    r_config: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """
        Fill in default directories

        METHYLFLOW_DATA_DIR replaces the data directory given at construction,
        i.e. the one from a configuration file. Assigning ``data_dir`` later,
        as the command line does, still takes precedence.
        """
        env_data_dir = os.environ.get(DATA_DIR_ENV_VAR)
        if env_data_dir:
            self.data_dir = env_data_dir
        if self.data_dir is None:
            self.data_dir = str(Path.cwd() / "data")
        if self.output_dir is None:
            self.output_dir = str(Path.cwd() / "methylflow_output")

        if not self.sources:
            self.sources = self._get_default_sources()
        if not self.tables:
            self.tables = self._get_default_tables()
        if not self.differential:
            self.differential = self._get_default_differential()
        if not self.genomics:
            self.genomics = self._get_default_genomics()
        if not self.binning:
            self.binning = self._get_default_binning()
        if not self.visualization:
            self.visualization = self._get_default_visualization()
        if not self.r_config:
            self.r_config = self._get_default_r_config()

    def _get_default_sources(self) -> Dict[str, Any]:
        """Default source files; paper table URLs must be filled in per deployment"""
        return {
            "umr": {"filename": "umr_table.tsv", "url": None},
            "dmr": {"filename": "dmr_table.tsv", "url": None},
            "dmr_retained": {"filename": "dmr_retained_table.tsv", "url": None},
            "zf_peaks": {"filename": "zf_peaks_table.csv", "url": None},
            "counts": {"filename": "rnaseq_counts.tsv", "url": None},
            "refgene": {
                "filename": "refGene_hg19.txt",
                "url": "https://hgdownload.cse.ucsc.edu/goldenpath/hg19/database/refGene.txt.gz",
            },
        }

    def _get_default_tables(self) -> Dict[str, Any]:
        """Default table parsing policy"""
        return {
            "missing_sentinel": "noData",
            "umr_unnamed_column": "genebody_classification",
            "drop_invalid_rows": True,
            "max_invalid_fraction": 0.5,
            "count_gene_column": "gene",
            "show_progress": True,
        }

    def _get_default_differential(self) -> Dict[str, Any]:
        """Default differential expression configuration"""
        return {
            "method": "pydeseq2",
            "fdr_threshold": 0.05,
            "min_counts": 10,
            "independent_filtering": True,
            "cooks_filter": True,
            "refit_cooks": True,
            "n_cpus": 1,
            "show_progress": True,
            "sample_groups": {
                "removal": ["removal"],
                "control": ["control", "no[_-]?dox", "untreated"],
                "treated": ["dox", "treated"],
            },
        }

    def _get_default_genomics(self) -> Dict[str, Any]:
        """Default genomics configuration"""
        return {
            "assembly": "hg19",
            "association": {"max_distance": 2000, "n_a_bins": 9},
            "promoters": {
                "upstream": 2000,
                "downstream": 200,
                "allowed_prefixes": ["NM_"],
                "standard_chromosomes_only": True,
                "selection_method": "longest",
            },
            "region_tables": ["umr", "dmr", "dmr_retained"],
            "methylation_columns": {
                "umr": {"delta_column": "delta_mC"},
                "dmr": {"treated_column": "mC_treated", "control_column": "mC_control"},
                "dmr_retained": {"treated_column": "mC_treated", "control_column": "mC_control"},
            },
            "overlaps": [
                ["dmr", "umr"],
                ["dmr_retained", "dmr"],
                ["zf_peaks", "dmr"],
                ["zf_peaks", "umr"],
            ],
        }

    def _get_default_binning(self) -> Dict[str, Any]:
        """Default fold-change category policy"""
        return {
            "headline_table": "umr",
            "threshold_high": 0.3,
            "fc_boundaries": [0, 0.3, 0.5, 0.7, 0.9, 1.1, float("inf")],
            "log2_boundaries": [-6, -4, -2, -1, -0.5, 0, 0.5, 1, 2, 4, 6],
        }

    def _get_default_visualization(self) -> Dict[str, Any]:
        """Default visualization configuration"""
        return {
            "save_formats": ["png", "pdf"],
            "dpi": 300,
            "point_size": 6,
            "alpha": 0.6,
            "class_colors": {
                "Increase": "#D55E00",
                "SmallDecrease": "#E69F00",
                "Decrease": "#0072B2",
            },
            "significance_colors": {True: "#CC3311", False: "#BBBBBB"},
        }

    def _get_default_r_config(self) -> Dict[str, Any]:
        """Default R configuration"""
        return {
            "r_home": None,  # Auto-detect
            "rscript": "Rscript",
            "timeout": 3600,
            "required_packages": ["DESeq2"],
        }

    def to_dict(self) -> Dict[str, Any]:
        config_dict = {
            "project_name": self.project_name,
            "data_dir": self.data_dir,
            "output_dir": self.output_dir,
        }
        for section in CONFIG_SECTIONS:
            config_dict[section] = getattr(self, section)
        return config_dict


def load_config(config_file: Union[str, Path]) -> Config:
    """Load configuration from YAML or JSON file"""
    config_path = Path(config_file)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, "r") as f:
        if config_path.suffix.lower() in [".yaml", ".yml"]:
            config_dict = yaml.safe_load(f)
        elif config_path.suffix.lower() == ".json":
            config_dict = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {config_path.suffix}")

    config_dict = config_dict or {}

    # Partial sections are merged over the defaults
    defaults = Config(data_dir=config_dict.get("data_dir"), output_dir=config_dict.get("output_dir"))
    for section in CONFIG_SECTIONS:
        if section in config_dict and isinstance(config_dict[section], dict):
            merged = dict(getattr(defaults, section))
            merged.update(config_dict[section])
            config_dict[section] = merged

    return Config(**config_dict)


def save_config(config: Config, output_file: Union[str, Path]) -> None:
    """Save configuration to YAML file"""
    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.to_dict()

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, indent=2, sort_keys=False)

    logger.info(f"Configuration saved to {output_path}")


def validate_config(config: Config) -> List[str]:
    """Validate configuration and return list of issues"""
    issues = []

    if config.output_dir:
        try:
            Path(config.output_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            issues.append(f"Cannot create output directory {config.output_dir}: {e}")

    for table_id in ["umr", "dmr", "dmr_retained", "zf_peaks", "counts", "refgene"]:
        source = config.sources.get(table_id)
        if not source or not source.get("filename"):
            issues.append(f"Source '{table_id}' needs a 'filename'")

    method = config.differential.get("method", "pydeseq2")
    if method not in ("pydeseq2", "DESeq2"):
        issues.append(f"Unknown differential method: {method}")

    fdr = config.differential.get("fdr_threshold", 0.05)
    if not 0 < fdr < 1:
        issues.append("fdr_threshold must be between 0 and 1")

    groups = config.differential.get("sample_groups", {})
    for group in ("control", "treated"):
        if not groups.get(group):
            issues.append(f"sample_groups needs at least one '{group}' pattern")

    max_fraction = config.tables.get("max_invalid_fraction", 0.5)
    if not 0 <= max_fraction <= 1:
        issues.append("max_invalid_fraction must be between 0 and 1")

    boundaries = config.binning.get("fc_boundaries", [])
    if list(boundaries) != sorted(boundaries):
        issues.append("fc_boundaries must be increasing")

    if config.genomics.get("association", {}).get("max_distance", 2000) < 0:
        issues.append("max_distance must be non-negative")

    return issues


def get_default_config() -> Config:
    """Get default configuration object"""
    return Config()
