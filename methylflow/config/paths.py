"""
Path configuration and validation for MethylFlow
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Config

logger = logging.getLogger(__name__)

OUTPUT_SUBDIRS = ["differential", "association", "figures", "charts"]


@dataclass
class PathConfig:
    """Configuration for file paths used in a MethylFlow run"""

    data_dir: Optional[Path] = None
    output_dir: Optional[Path] = None

    def __post_init__(self):
        """Convert string paths to Path objects"""
        for field_name, field_value in self.__dict__.items():
            if field_value is not None and isinstance(field_value, str):
                setattr(self, field_name, Path(field_value))

    @classmethod
    def from_config(cls, config: Config) -> "PathConfig":
        return cls(data_dir=config.data_dir, output_dir=config.output_dir)

    @property
    def raw_dir(self) -> Path:
        """Directory holding downloaded source files"""
        if self.data_dir is None:
            raise ValueError("Data directory not set")
        return self.data_dir / "raw"

    def create_output_dirs(self) -> None:
        """Create data and output directories if they don't exist"""
        dirs_to_create = [self.raw_dir]
        if self.output_dir is not None:
            dirs_to_create.append(self.output_dir)
            dirs_to_create.extend(self.output_dir / sub for sub in OUTPUT_SUBDIRS)

        for dir_path in dirs_to_create:
            try:
                dir_path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Failed to create directory {dir_path}: {e}")
                raise

    def get_output_subdir(self, subdir_name: str) -> Path:
        """Get a subdirectory within the output directory"""
        if self.output_dir is None:
            raise ValueError("Output directory not set")

        subdir = self.output_dir / subdir_name
        subdir.mkdir(parents=True, exist_ok=True)
        return subdir

    def validate(self) -> List[str]:
        """Validate path configuration"""
        issues = []

        if self.data_dir is None:
            issues.append("data_dir is not set")
        elif self.data_dir.exists() and not self.data_dir.is_dir():
            issues.append(f"data_dir is not a directory: {self.data_dir}")

        if self.output_dir is not None:
            try:
                self.output_dir.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                issues.append(f"Cannot create output directory parent: {e}")

        return issues


def validate_paths(path_config: PathConfig) -> Dict[str, Any]:
    """Validate path configuration and return detailed results"""

    results = {"valid": True, "issues": [], "created_dirs": []}

    issues = path_config.validate()
    results["issues"] = issues

    if issues:
        results["valid"] = False
        return results

    try:
        path_config.create_output_dirs()
    except OSError as e:
        results["valid"] = False
        results["issues"].append(f"Failed to create directories: {e}")
        return results

    results["created_dirs"] = [str(path_config.raw_dir)]
    if path_config.output_dir:
        results["created_dirs"].append(str(path_config.output_dir))

    return results
