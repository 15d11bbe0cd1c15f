"""
Utility functions and classes for MethylFlow
"""

from .data_utils import (STANDARD_CHROMOSOMES, make_region_ids,
                         require_columns, standardize_chromosomes)
from .logging import get_logger, log_execution_time, setup_logging
from .r_utils import RInterface
from .validation import (validate_environment, validate_output_permissions,
                         validate_python_packages)

__all__ = [
    "setup_logging",
    "get_logger",
    "log_execution_time",
    "validate_environment",
    "validate_output_permissions",
    "validate_python_packages",
    "standardize_chromosomes",
    "make_region_ids",
    "require_columns",
    "STANDARD_CHROMOSOMES",
    "RInterface",
]
