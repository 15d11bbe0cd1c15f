"""
Source table retrieval and schema-validated loading
"""

from .download import SourceFetcher
from .loader import (REGION_TABLES, TableLoader, clean_count_matrix,
                     clean_region_table, coerce_numeric_columns,
                     count_leading_comments, read_raw_table)

__all__ = [
    "SourceFetcher",
    "TableLoader",
    "REGION_TABLES",
    "read_raw_table",
    "clean_region_table",
    "clean_count_matrix",
    "coerce_numeric_columns",
    "count_leading_comments",
]
