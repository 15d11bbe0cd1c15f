"""
Declared schemas for every source table

Each supplementary table is described here once, up front: column names in
file order, which columns must be numeric, which hold methylation levels
(and so accept the missing-value sentinel), and how the file is delimited.
The loader validates files against these declarations instead of assigning
names by position after the fact.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

REGION_COLUMNS = ("chrom", "start", "end")

# Column names as printed in the published supplementary files
DMR_HEADER_ALIASES = (
    ("chr", "chrom"),
    ("nCpG", "cpg_count"),
    ("mC_noDox", "mC_control"),
    ("mC_Dox", "mC_treated"),
    ("pvalue", "dmr_pvalue"),
    ("class", "dmr_class"),
)
PEAK_HEADER_ALIASES = (
    ("chr", "chrom"),
    ("name", "peak_id"),
)


@dataclass(frozen=True)
class TableSchema:
    """Fixed column schema for one delimited source table"""

    table_id: str
    columns: Tuple[str, ...]
    sep: str = "\t"
    has_header: bool = False
    integer_columns: Tuple[str, ...] = ("start", "end")
    numeric_columns: Tuple[str, ...] = ()
    methylation_columns: Tuple[str, ...] = ()
    header_aliases: Tuple[Tuple[str, str], ...] = ()
    description: str = ""

    @property
    def n_columns(self) -> int:
        return len(self.columns)

    @property
    def is_region_table(self) -> bool:
        return all(col in self.columns for col in REGION_COLUMNS)

    def coerced_columns(self) -> List[str]:
        """All columns that must parse as numbers, in file order"""
        wanted = (
            set(self.integer_columns)
            | set(self.numeric_columns)
            | set(self.methylation_columns)
        )
        return [col for col in self.columns if col in wanted]

    def normalize_header(self, names) -> List[str]:
        """
        Header tokens mapped onto schema names

        Tokens are stripped and matched case-insensitively against both the
        schema columns and the published names in ``header_aliases``.
        Unknown tokens are returned stripped but otherwise unchanged.
        """
        lookup = {col.lower(): col for col in self.columns}
        lookup.update({alias.lower(): col for alias, col in self.header_aliases})
        normalized = []
        for name in names:
            token = str(name).strip()
            normalized.append(lookup.get(token.lower(), token))
        return normalized


@dataclass(frozen=True)
class CountMatrixSchema:
    """Schema for the RNA-seq count matrix: one label column plus samples"""

    table_id: str = "counts"
    gene_column: str = "gene"
    sep: str = "\t"
    min_samples: int = 2


def build_table_schemas(tables_config: Optional[Dict[str, Any]] = None) -> Dict[str, TableSchema]:
    """
    Build the region table schemas

    Args:
        tables_config: the ``tables`` section of the configuration. The key
            ``umr_unnamed_column`` names the UMR table's twelfth column,
            which the published file leaves unnamed.

    Returns:
        Dictionary of table_id -> TableSchema
    """
    tables_config = tables_config or {}
    umr_last_column = tables_config.get("umr_unnamed_column", "genebody_classification")

    schemas = [
        TableSchema(
            table_id="umr",
            columns=(
                "chrom",
                "start",
                "end",
                "cpg_count",
                "mC_control",
                "mC_treated",
                "delta_mC",
                "gene_symbol",
                "distance_to_tss",
                "promoter_classification",
                "cpg_island_classification",
                umr_last_column,
            ),
            integer_columns=("start", "end", "cpg_count"),
            numeric_columns=("distance_to_tss",),
            methylation_columns=("mC_control", "mC_treated", "delta_mC"),
            description="Unmethylated regions with induced methylation levels",
        ),
        TableSchema(
            table_id="dmr",
            columns=(
                "chrom",
                "start",
                "end",
                "cpg_count",
                "mC_control",
                "mC_treated",
                "dmr_pvalue",
                "dmr_class",
            ),
            has_header=True,
            header_aliases=DMR_HEADER_ALIASES,
            integer_columns=("start", "end", "cpg_count"),
            numeric_columns=("dmr_pvalue",),
            methylation_columns=("mC_control", "mC_treated"),
            description="Differentially methylated regions after induction",
        ),
        TableSchema(
            table_id="dmr_retained",
            columns=(
                "chrom",
                "start",
                "end",
                "cpg_count",
                "mC_control",
                "mC_treated",
                "mC_removal",
                "dmr_class",
            ),
            has_header=True,
            header_aliases=DMR_HEADER_ALIASES,
            integer_columns=("start", "end", "cpg_count"),
            methylation_columns=("mC_control", "mC_treated", "mC_removal"),
            description="DMRs that keep their methylation after induction removal",
        ),
        TableSchema(
            table_id="zf_peaks",
            columns=(
                "chrom",
                "start",
                "end",
                "peak_id",
                "score",
                "fold_enrichment",
                "log10_pvalue",
                "log10_qvalue",
            ),
            sep=",",
            has_header=True,
            header_aliases=PEAK_HEADER_ALIASES,
            numeric_columns=("score", "fold_enrichment", "log10_pvalue", "log10_qvalue"),
            description="Zinc-finger binding peaks",
        ),
    ]

    return {schema.table_id: schema for schema in schemas}


def get_count_schema(tables_config: Optional[Dict[str, Any]] = None) -> CountMatrixSchema:
    """Count matrix schema, with the label column configurable"""
    tables_config = tables_config or {}
    return CountMatrixSchema(gene_column=tables_config.get("count_gene_column", "gene"))
