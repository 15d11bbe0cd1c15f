"""
Schema-driven loading of the supplementary tables and the count matrix

This module turns raw delimited files into clean DataFrames:

* region tables (UMR, DMR, retained DMR, zinc-finger peaks) are parsed
  against their declared TableSchema, missing-value sentinels become NaN
  and rows carrying stray non-numeric tokens are dropped;
* the RNA-seq count matrix loses every row whose gene label is duplicated
  and every row that is zero in all samples.

Row-level problems are logged and filtered. Structural problems raise
SchemaMismatch: a file whose columns disagree with the schema in number or
in header names, or a column that is mostly not numbers.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from ..config import (Config, CountMatrixSchema, PathConfig, TableSchema,
                      build_table_schemas, get_count_schema)
from ..exceptions import SchemaMismatch
from ..utils import (get_logger, log_execution_time, make_region_ids,
                     standardize_chromosomes)
from .download import SourceFetcher

logger = get_logger(__name__)

REGION_TABLES = ["umr", "dmr", "dmr_retained", "zf_peaks"]


def count_leading_comments(path: Path, comment_char: str = "#") -> int:
    """Number of lines at the top of a file whose first token starts with '#'"""
    n_lines = 0
    with open(path, "r") as handle:
        for line in handle:
            if not line.lstrip().startswith(comment_char):
                break
            n_lines += 1
    return n_lines


def read_raw_table(path: Path, schema: TableSchema) -> pd.DataFrame:
    """
    Read a delimited file as strings and name its columns from the schema

    Raises:
        SchemaMismatch: the file does not have the declared number of columns,
            or its header row names them differently from the schema
    """
    skip = count_leading_comments(path)

    try:
        raw = pd.read_csv(
            path,
            sep=schema.sep,
            header=0 if schema.has_header else None,
            skiprows=skip,
            dtype=str,
            skip_blank_lines=True,
        )
    except pd.errors.ParserError as e:
        raise SchemaMismatch(schema.table_id, f"ragged rows: {e}") from e
    except pd.errors.EmptyDataError as e:
        raise SchemaMismatch(schema.table_id, "file contains no data") from e

    if raw.shape[1] != schema.n_columns:
        raise SchemaMismatch(
            schema.table_id,
            f"expected {schema.n_columns} columns, found {raw.shape[1]}",
        )

    if schema.has_header:
        header = schema.normalize_header(raw.columns)
        if header != list(schema.columns):
            differing = [
                f"{found!r} where {expected!r} belongs"
                for found, expected in zip(header, schema.columns)
                if found != expected
            ]
            raise SchemaMismatch(
                schema.table_id, f"header does not match schema: {', '.join(differing)}"
            )

    raw.columns = list(schema.columns)
    return raw


def coerce_numeric_columns(
    raw: pd.DataFrame,
    columns: List[str],
    table_id: str,
    drop_invalid_rows: bool = True,
    max_invalid_fraction: float = 0.5,
) -> pd.DataFrame:
    """
    Coerce designated columns to numbers, dropping rows with stray tokens

    A token is invalid when it is present (not NaN, not blank) but does not
    parse as a number, for example a value carrying a currency marker.

    Args:
        raw: Table with string columns
        columns: Columns that must be numeric
        table_id: Table name used in messages
        drop_invalid_rows: Drop offending rows (True) or raise (False)
        max_invalid_fraction: Above this share of invalid values the whole
            column is considered mistyped

    Returns:
        New DataFrame with numeric columns and invalid rows removed
    """
    coerced = {}
    invalid_rows = pd.Series(False, index=raw.index)

    for column in columns:
        values = raw[column]
        numeric = pd.to_numeric(values, errors="coerce")
        present = values.notna() & (values.astype(str).str.strip() != "")
        invalid = present & numeric.isna()

        if invalid.any():
            fraction = invalid.sum() / max(len(raw), 1)
            examples = values[invalid].unique()[:3].tolist()
            if fraction > max_invalid_fraction:
                raise SchemaMismatch(
                    table_id,
                    f"column '{column}' is not numeric ({fraction:.0%} invalid, e.g. {examples})",
                )
            if not drop_invalid_rows:
                raise SchemaMismatch(
                    table_id, f"non-numeric value {examples[0]!r} in column '{column}'"
                )
            logger.warning(
                f"{table_id}: {invalid.sum()} rows with non-numeric '{column}' values "
                f"{examples} will be dropped"
            )
            invalid_rows |= invalid

        coerced[column] = numeric

    cleaned = raw.assign(**coerced)
    return cleaned.loc[~invalid_rows]


def clean_region_table(
    raw: pd.DataFrame, schema: TableSchema, tables_config: Optional[Dict[str, Any]] = None
) -> pd.DataFrame:
    """Apply the sentinel, numeric and coordinate rules to a raw region table"""
    tables_config = tables_config or {}
    sentinel = tables_config.get("missing_sentinel", "noData")
    table_id = schema.table_id
    n_raw = len(raw)

    # Sentinel only counts as missing in methylation columns
    sentinel_free = {
        column: raw[column].where(raw[column].str.strip() != sentinel)
        for column in schema.methylation_columns
    }
    table = raw.assign(**sentinel_free)

    table = coerce_numeric_columns(
        table,
        schema.coerced_columns(),
        table_id,
        drop_invalid_rows=tables_config.get("drop_invalid_rows", True),
        max_invalid_fraction=tables_config.get("max_invalid_fraction", 0.5),
    )

    table = table.assign(chrom=standardize_chromosomes(table["chrom"]))
    bad_coords = (
        table["chrom"].isin(["", "nan"])
        | table["start"].isna()
        | table["end"].isna()
        | (table["start"] > table["end"])
    )
    if bad_coords.any():
        logger.warning(f"{table_id}: dropping {bad_coords.sum()} rows with invalid coordinates")
        table = table.loc[~bad_coords]

    integer_values = {}
    for column in schema.integer_columns:
        if table[column].notna().all():
            integer_values[column] = table[column].round().astype("int64")
    table = table.assign(**integer_values)

    table = table.assign(region_id=make_region_ids(table)).reset_index(drop=True)

    logger.info(f"{table_id}: {n_raw} rows read, {len(table)} rows kept")
    return table


def clean_count_matrix(raw: pd.DataFrame, schema: CountMatrixSchema) -> pd.DataFrame:
    """
    Clean a raw count matrix

    Every row sharing a duplicated gene label is removed (none kept), as are
    rows without a label, rows with non-numeric counts and rows that are zero
    in every sample. Counts are rounded to integers.

    Returns:
        DataFrame indexed by gene with one integer column per sample
    """
    gene_col = schema.gene_column
    if gene_col not in raw.columns:
        raise SchemaMismatch(schema.table_id, f"missing '{gene_col}' column")

    sample_columns = [col for col in raw.columns if col != gene_col]
    if len(sample_columns) < schema.min_samples:
        raise SchemaMismatch(
            schema.table_id,
            f"expected at least {schema.min_samples} sample columns, found {len(sample_columns)}",
        )

    n_raw = len(raw)
    counts = raw.loc[raw[gene_col].notna()]
    counts = counts.assign(**{gene_col: counts[gene_col].astype(str).str.strip()})

    duplicated = counts[gene_col].duplicated(keep=False)
    if duplicated.any():
        dup_genes = sorted(counts.loc[duplicated, gene_col].unique())
        logger.warning(
            f"Removing {duplicated.sum()} rows for {len(dup_genes)} duplicated gene labels "
            f"(e.g. {dup_genes[:5]})"
        )
        counts = counts.loc[~duplicated]

    counts = coerce_numeric_columns(counts, sample_columns, schema.table_id)
    values = counts[sample_columns].fillna(0)

    all_zero = (values == 0).all(axis=1)
    if all_zero.any():
        logger.info(f"Removing {all_zero.sum()} genes with zero counts in every sample")

    matrix = (
        values.loc[~all_zero]
        .round()
        .astype(np.int64)
        .set_axis(counts.loc[~all_zero, gene_col].values, axis=0)
    )
    matrix.index.name = gene_col

    logger.info(
        f"Count matrix: {n_raw} rows read, {len(matrix)} genes x {len(sample_columns)} samples kept"
    )
    return matrix


class TableLoader:
    """Load source tables by identifier, validated against declared schemas"""

    def __init__(self, config: Config, fetcher: Optional[SourceFetcher] = None):
        """
        Initialize table loader

        Args:
            config: MethylFlow configuration object
            fetcher: Source fetcher; built from the configuration if omitted
        """
        self.config = config
        self.tables_config = config.tables
        self.schemas = build_table_schemas(config.tables)
        self.count_schema = get_count_schema(config.tables)

        if fetcher is None:
            paths = PathConfig.from_config(config)
            fetcher = SourceFetcher(
                paths.raw_dir, config.sources, show_progress=config.tables.get("show_progress", True)
            )
        self.fetcher = fetcher

    def get_schema(self, table_id: str) -> TableSchema:
        if table_id not in self.schemas:
            raise ValueError(
                f"Unknown table '{table_id}'. Available: {sorted(self.schemas)}"
            )
        return self.schemas[table_id]

    def load(self, table_id: str) -> pd.DataFrame:
        """
        Load one region table

        Args:
            table_id: One of 'umr', 'dmr', 'dmr_retained', 'zf_peaks'

        Returns:
            Clean DataFrame with the schema's columns plus 'region_id'
        """
        schema = self.get_schema(table_id)
        path = self.fetcher.fetch(table_id)
        logger.info(f"Loading {table_id} from {path}")

        raw = read_raw_table(path, schema)
        return clean_region_table(raw, schema, self.tables_config)

    def load_counts(self) -> pd.DataFrame:
        """Load the RNA-seq count matrix (genes x samples)"""
        schema = self.count_schema
        path = self.fetcher.fetch(schema.table_id)
        logger.info(f"Loading count matrix from {path}")

        skip = count_leading_comments(path)
        try:
            raw = pd.read_csv(
                path, sep=schema.sep, skiprows=skip, dtype={schema.gene_column: str}
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise SchemaMismatch(schema.table_id, str(e)) from e

        return clean_count_matrix(raw, schema)

    @log_execution_time
    def load_all(self) -> Dict[str, pd.DataFrame]:
        """Load every region table and the count matrix"""
        tables = {table_id: self.load(table_id) for table_id in REGION_TABLES}
        tables["counts"] = self.load_counts()
        return tables
