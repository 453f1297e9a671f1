"""
vadrtools tabular: annotation output tables.

Seven whitespace-delimited table kinds are written by an annotation run,
distinguished by filename suffix:

- .alc  per-alert-code counts
- .alt  per-alert instances
- .ftr  per-feature annotation
- .mdl  per-model summary
- .sgm  per-segment annotation
- .sqa  per-sequence annotation summary
- .sqc  per-sequence classification summary

Example Usage:
    >>> from vadrtools.tabular import read_tabular, summarize_models
    >>> sqa = read_tabular("run/run.vadr.sqa")
    >>> mdl = summarize_models(sqa)
"""

# Data models
from .models import (
    COLUMNS,
    DESCRIPTIONS,
    ColumnSpec,
    ColumnType,
    TabularKind,
    column_names,
    detect_kind,
    min_fields,
    output_path,
)

# Parsing
from .parser import (
    iter_data_lines,
    load_output_dir,
    parse_line,
    read_tabular,
    validate_tabular,
)

# Writing
from .writer import (
    format_table,
    format_tabular,
    write_tabular,
)

# Summaries
from .summary import (
    ALL_MODELS,
    NO_MODEL,
    alerts_by_sequence,
    expected_pass_fail,
    pass_fail_counts,
    summarize_alerts,
    summarize_models,
)


__all__ = [
    # Models
    "COLUMNS",
    "DESCRIPTIONS",
    "ColumnSpec",
    "ColumnType",
    "TabularKind",
    "column_names",
    "detect_kind",
    "min_fields",
    "output_path",
    # Parsing
    "iter_data_lines",
    "load_output_dir",
    "parse_line",
    "read_tabular",
    "validate_tabular",
    # Writing
    "format_table",
    "format_tabular",
    "write_tabular",
    # Summaries
    "ALL_MODELS",
    "NO_MODEL",
    "alerts_by_sequence",
    "expected_pass_fail",
    "pass_fail_counts",
    "summarize_alerts",
    "summarize_models",
]
