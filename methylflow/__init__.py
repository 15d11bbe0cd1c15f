"""
MethylFlow: re-derivation of Figure 5 of a DNA-methylation silencing study

MethylFlow downloads the supplementary region tables and the RNA-seq count
matrix of the study, compares Methylated against Control samples, links
methylated regions to gene promoters and reports how the expression of
robustly methylated genes changed.

Main Components:
- Schema-validated table loading with a local download cache
- Interval overlap and nearest-promoter lookups with bioframe
- Differential expression (PyDESeq2, or DESeq2 through R)
- Region to gene association with A-value bins
- Fold-change categories and Figure 5 charts

Example:
    >>> from methylflow import MethylFlowAnalysis
    >>> analysis = MethylFlowAnalysis("config.yaml")
    >>> results = analysis.run_full_pipeline()
"""

import logging
import sys
from importlib import metadata
from typing import Any, Dict

try:
    __version__ = metadata.version("methylflow")
except metadata.PackageNotFoundError:
    __version__ = "0.1.0-dev"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)

# Module imports
from . import differential, genomics, tables, utils, visualization
from .config import Config, load_config
# Main imports
from .core import MethylFlowAnalysis
from .exceptions import (DifferentialAnalysisError, EmptyGroupError,
                         MethylFlowError, SchemaMismatch, SourceUnavailable)
from .utils import setup_logging, validate_environment

__all__ = [
    "__version__",
    "MethylFlowAnalysis",
    "Config",
    "load_config",
    "setup_logging",
    "validate_environment",
    "tables",
    "differential",
    "genomics",
    "visualization",
    "utils",
    "MethylFlowError",
    "SourceUnavailable",
    "SchemaMismatch",
    "EmptyGroupError",
    "DifferentialAnalysisError",
]


def get_info() -> Dict[str, Any]:
    """Get package information."""
    return {
        "name": "MethylFlow",
        "version": __version__,
        "description": "Figure 5 re-derivation: induced promoter methylation vs gene expression",
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        "modules": __all__[6:11],
    }


def check_dependencies() -> Dict[str, bool]:
    """Check if key dependencies are available."""
    dependencies = {}

    for package in ["numpy", "pandas", "bioframe", "pydeseq2", "matplotlib", "seaborn", "requests"]:
        try:
            __import__(package)
            dependencies[package] = True
        except ImportError:
            dependencies[package] = False

    return dependencies


# Initialize package
logger = logging.getLogger(__name__)
logger.debug(f"MethylFlow v{__version__} initialized")

# Check critical dependencies
deps = check_dependencies()
missing_deps = [dep for dep, available in deps.items() if not available]
if missing_deps:
    logger.warning(f"Missing dependencies: {missing_deps}")
