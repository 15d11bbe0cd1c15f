"""
Exception hierarchy for MethylFlow

Fatal conditions raise one of these. Row-level data-quality problems
(sentinels, stray symbols, duplicate genes, unmatched joins) are filtered
and logged instead.
"""


class MethylFlowError(Exception):
    """Base class for all MethylFlow errors"""


class SourceUnavailable(MethylFlowError):
    """A remote source could not be fetched and no cached copy exists"""

    def __init__(self, source_id: str, reason: str):
        self.source_id = source_id
        self.reason = reason
        super().__init__(f"Source '{source_id}' unavailable: {reason}")


class SchemaMismatch(MethylFlowError):
    """A loaded table does not match its declared schema"""

    def __init__(self, table_id: str, reason: str):
        self.table_id = table_id
        self.reason = reason
        super().__init__(f"Table '{table_id}' does not match its schema: {reason}")


class EmptyGroupError(MethylFlowError):
    """A differential expression group has no samples after filtering"""

    def __init__(self, group: str, samples=None):
        self.group = group
        self.samples = list(samples) if samples is not None else []
        super().__init__(
            f"Group '{group}' has no samples (available samples: {self.samples})"
        )


class DifferentialAnalysisError(MethylFlowError):
    """The differential expression backend failed"""
