#!/usr/bin/env python3

import pathlib

from setuptools import find_packages, setup

# The directory containing this file
HERE = pathlib.Path(__file__).parent

# The text of the README file
README = (HERE / "README.md").read_text()

# Version
__version__ = "0.1.0"

setup(
    name="methylflow",
    version=__version__,
    author="MethylFlow Development Team",
    author_email="methylflow@example.com",
    description="Re-derivation of Figure 5: induced promoter methylation vs gene expression",
    long_description=README,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    install_requires=[
        # Core scientific computing
        "numpy>=1.20.0",
        "pandas>=1.3.0",
        # Genomic intervals
        "bioframe>=0.5.0",
        # Differential expression
        "pydeseq2>=0.5.0",
        # Visualization
        "matplotlib>=3.4.0",
        "seaborn>=0.11.0",
        # Data retrieval
        "requests>=2.25.0",
        # Configuration and utilities
        "pyyaml>=6.0",
        "tqdm>=4.60.0",
        "click>=8.0.0",
        "colorlog>=6.6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
        "dev": [
            "black>=22.0.0",
            "isort>=5.10.0",
            "flake8>=5.0.0",
            "mypy>=0.991",
        ],
    },
    entry_points={
        "console_scripts": [
            "methylflow=methylflow.cli:main",
        ],
    },
    zip_safe=False,
    keywords=[
        "DNA-methylation",
        "epigenomics",
        "gene-silencing",
        "RNA-seq",
        "differential-expression",
        "bioinformatics",
        "reproducibility",
    ],
)
