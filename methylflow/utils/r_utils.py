"""
R integration utilities for MethylFlow

R is only needed for the optional DESeq2 backend; scripts are written to a
temporary file and executed with Rscript.
"""

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class RInterface:
    """Run R code through Rscript"""

    def __init__(self, r_config: Optional[Dict[str, Any]] = None):
        """
        Initialize R interface

        Args:
            r_config: R configuration dictionary ('rscript', 'r_home', 'timeout')
        """
        self.r_config = r_config or {}
        self.rscript = self.r_config.get("rscript", "Rscript")
        self.timeout = self.r_config.get("timeout", 3600)

        r_home = self.r_config.get("r_home")
        if r_home:
            os.environ["R_HOME"] = r_home

    def check_r_available(self) -> bool:
        """Check whether Rscript can be executed"""
        try:
            result = subprocess.run(
                [self.rscript, "--version"], capture_output=True, text=True, timeout=10
            )
        except (subprocess.TimeoutExpired, FileNotFoundError):
            logger.warning(f"{self.rscript} not found in PATH")
            return False
        return result.returncode == 0

    def check_packages(self, packages: List[str]) -> Dict[str, bool]:
        """
        Check if R packages are installed

        Args:
            packages: List of package names to check

        Returns:
            Dictionary of package_name -> installed status
        """
        if not self.check_r_available():
            return {pkg: False for pkg in packages}

        quoted = ", ".join(f'"{pkg}"' for pkg in packages)
        check_script = (
            f"pkgs <- c({quoted}); "
            "ok <- sapply(pkgs, requireNamespace, quietly = TRUE); "
            "cat(paste(pkgs, ok, sep = ':', collapse = '\\n'))"
        )

        try:
            result = subprocess.run(
                [self.rscript, "-e", check_script],
                capture_output=True,
                text=True,
                timeout=60,
            )
        except subprocess.TimeoutExpired:
            logger.error("Timeout checking R packages")
            return {pkg: False for pkg in packages}

        if result.returncode != 0:
            logger.error(f"Error checking R packages: {result.stderr}")
            return {pkg: False for pkg in packages}

        status = {pkg: False for pkg in packages}
        for line in result.stdout.strip().splitlines():
            if ":" in line:
                pkg, flag = line.split(":", 1)
                status[pkg.strip()] = flag.strip().upper() == "TRUE"
        return status

    def run_script(
        self, r_code: str, working_dir: Optional[Union[str, Path]] = None
    ) -> Dict[str, Any]:
        """
        Run an R script

        Args:
            r_code: R code to execute
            working_dir: Working directory for the script

        Returns:
            Dictionary with 'success', 'output', 'error' and 'working_dir'
        """
        if working_dir is None:
            working_dir = tempfile.mkdtemp(prefix="methylflow_r_")
        working_dir = Path(working_dir)
        working_dir.mkdir(parents=True, exist_ok=True)

        script_path = working_dir / "analysis.R"
        script_path.write_text(r_code)

        try:
            result = subprocess.run(
                [self.rscript, "--vanilla", str(script_path)],
                cwd=str(working_dir),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            return {
                "success": False,
                "error": "R script execution timed out",
                "output": None,
                "working_dir": str(working_dir),
            }
        except FileNotFoundError:
            return {
                "success": False,
                "error": f"{self.rscript} not available",
                "output": None,
                "working_dir": str(working_dir),
            }

        return {
            "success": result.returncode == 0,
            "output": result.stdout,
            "error": result.stderr if result.returncode != 0 else None,
            "working_dir": str(working_dir),
        }

