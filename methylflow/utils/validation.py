"""
Validation utilities for MethylFlow
"""

import importlib
import logging
import shutil
import sys
from pathlib import Path
from typing import Dict, List, Union

logger = logging.getLogger(__name__)

CORE_PACKAGES = [
    "numpy",
    "pandas",
    "bioframe",
    "matplotlib",
    "seaborn",
    "requests",
    "yaml",
    "tqdm",
]


def validate_python_packages(packages: List[str]) -> Dict[str, bool]:
    """Check which of the given Python packages can be imported"""
    results = {}

    for package in packages:
        try:
            importlib.import_module(package)
            results[package] = True
        except ImportError:
            results[package] = False
        logger.debug(f"Package {package}: {'available' if results[package] else 'missing'}")

    return results


def validate_environment(method: str = "pydeseq2") -> List[str]:
    """
    Environment validation for a pipeline run

    Args:
        method: Differential expression method that will be used

    Returns:
        List of validation issues found
    """
    issues = []

    logger.info("Validating MethylFlow environment...")

    if sys.version_info < (3, 10):
        issues.append(
            f"Python 3.10+ required, found {sys.version_info.major}.{sys.version_info.minor}"
        )

    package_status = validate_python_packages(CORE_PACKAGES)
    missing_packages = [pkg for pkg, available in package_status.items() if not available]
    if missing_packages:
        issues.append(f"Missing Python packages: {', '.join(missing_packages)}")

    if method == "pydeseq2" and not validate_python_packages(["pydeseq2"])["pydeseq2"]:
        issues.append("pydeseq2 is not installed (required for the pydeseq2 method)")

    if method == "DESeq2" and shutil.which("Rscript") is None:
        issues.append("Rscript not found in PATH (required for the DESeq2 method)")

    if issues:
        logger.warning(f"Environment validation found {len(issues)} issues")
        for issue in issues:
            logger.warning(f"  - {issue}")
    else:
        logger.info("Environment validation passed")

    return issues


def validate_output_permissions(output_dir: Union[str, Path]) -> bool:
    """Check if output directory is writable"""
    output_path = Path(output_dir)
    test_file = output_path / ".write_test"

    try:
        output_path.mkdir(parents=True, exist_ok=True)
        test_file.write_text("test")
        test_file.unlink()
    except OSError as e:
        logger.error(f"Output directory not writable: {e}")
        return False

    return True
