"""
Parsing and validation of tabular output files.

Data lines are split on whitespace into exactly as many fields as the kind
has columns; anything past the second-to-last column goes into the final
field, which may therefore contain spaces.
"""

import re
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

import pandas as pd

from ..alerts import AlertCatalog, default_catalog
from .models import (
    COLUMNS,
    ColumnSpec,
    ColumnType,
    TabularKind,
    column_names,
    detect_kind,
    min_fields,
    output_path,
)

MISSING = "-"

INTEGER_RE = re.compile(r"^-?\d+$")
FLOAT_RE = re.compile(r"^-?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")


def parse_line(line: str, kind: TabularKind) -> List[str]:
    """Split one data line into the kind's fields.

    Raises:
        ValueError: If the line is a comment, starts with whitespace, or
            has too few fields
    """
    line = line.rstrip("\n\r")
    if line.startswith("#"):
        raise ValueError("Comment line is not a data line")
    if line[:1].isspace():
        raise ValueError("Data line starts with whitespace")
    n = min_fields(kind)
    fields = line.split(None, n - 1)
    if len(fields) < n:
        raise ValueError(f"Expected at least {n} fields for .{kind.value}, got {len(fields)}")
    return fields


def iter_data_lines(filepath: Union[str, Path]) -> Iterator[Tuple[int, str]]:
    """Yield (line_number, line) for every non-comment, non-empty line."""
    with open(filepath, "r") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.rstrip("\n\r")
            if not line or line.startswith("#"):
                continue
            yield line_number, line


def _convert_column(series: pd.Series, col: ColumnSpec) -> pd.Series:
    """Convert a column to int or float when every value is numeric."""
    if not col.is_numeric or series.empty:
        return series
    pattern = INTEGER_RE if col.type is ColumnType.INTEGER else FLOAT_RE
    if not series.map(lambda value: bool(pattern.match(value))).all():
        return series
    if col.type is ColumnType.INTEGER:
        return series.astype(int)
    return series.astype(float)


def read_tabular(filepath: Union[str, Path], kind: Optional[TabularKind] = None) -> pd.DataFrame:
    """Read a tabular output file into a DataFrame.

    Numeric columns are converted when all of their values are numbers;
    columns containing "-" keep string values.

    Args:
        filepath: Path to the file
        kind: Tabular kind (detected from the suffix if not given)

    Returns:
        DataFrame with the kind's column names

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If a data line is malformed
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Tabular file not found: {filepath}")
    if kind is None:
        kind = detect_kind(path)

    rows = []
    for line_number, line in iter_data_lines(path):
        try:
            rows.append(parse_line(line, kind))
        except ValueError as e:
            raise ValueError(f"{path.name} line {line_number}: {e}") from e

    df = pd.DataFrame(rows, columns=column_names(kind), dtype=object)
    for col in COLUMNS[kind]:
        df[col.name] = _convert_column(df[col.name], col)
    return df


def _check_value(value: str, col: ColumnSpec, catalog: AlertCatalog) -> Optional[str]:
    """Return an error message if value is not valid for col."""
    if value == MISSING:
        if col.allow_missing:
            return None
        return f"column '{col.name}' may not be '-'"
    if col.type is ColumnType.INTEGER and not INTEGER_RE.match(value):
        return f"column '{col.name}' expected an integer, got '{value}'"
    if col.type is ColumnType.FLOAT and not FLOAT_RE.match(value):
        return f"column '{col.name}' expected a number, got '{value}'"
    if col.type is ColumnType.PASS_FAIL and value not in ("PASS", "FAIL"):
        return f"column '{col.name}' expected PASS or FAIL, got '{value}'"
    if col.type is ColumnType.YES_NO and value not in ("yes", "no"):
        return f"column '{col.name}' expected yes or no, got '{value}'"
    if col.type is ColumnType.STRAND and value not in ("+", "-", "!"):
        return f"column '{col.name}' expected a strand, got '{value}'"
    if col.type is ColumnType.ALERT_CODE and value not in catalog:
        return f"column '{col.name}' unknown alert code '{value}'"
    if col.choices is not None and value not in col.choices:
        return f"column '{col.name}' unexpected value '{value}'"
    return None


def validate_tabular(
    filepath: Union[str, Path],
    kind: Optional[TabularKind] = None,
    catalog: Optional[AlertCatalog] = None,
    strict: bool = False,
) -> Tuple[bool, List[str], List[str]]:
    """Validate a tabular output file.

    Args:
        filepath: Path to the file
        kind: Tabular kind (detected from the suffix if not given)
        catalog: Alert catalog for alert code columns
        strict: If True, treat warnings as errors

    Returns:
        Tuple of (is_valid, errors, warnings)
    """
    errors: List[str] = []
    warnings: List[str] = []

    path = Path(filepath)
    if not path.exists():
        errors.append(f"Tabular file not found: {filepath}")
        return False, errors, warnings

    if kind is None:
        try:
            kind = detect_kind(path)
        except ValueError as e:
            errors.append(str(e))
            return False, errors, warnings

    if catalog is None:
        catalog = default_catalog()

    has_header = False
    n_data = 0
    idx_seen: Dict[str, int] = {}

    with open(path, "r") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.rstrip("\n\r")

            if not line:
                warnings.append(f"Line {line_number}: empty line")
                continue

            if line.startswith("#"):
                has_header = True
                continue

            if line[0].isspace():
                errors.append(f"Line {line_number}: data line starts with whitespace")
                continue

            try:
                fields = parse_line(line, kind)
            except ValueError as e:
                errors.append(f"Line {line_number}: {e}")
                continue

            n_data += 1
            for value, col in zip(fields, COLUMNS[kind]):
                problem = _check_value(value, col, catalog)
                if problem:
                    errors.append(f"Line {line_number}: {problem}")

            idx = fields[0]
            if idx != MISSING:
                if idx in idx_seen:
                    errors.append(
                        f"Line {line_number}: duplicate idx '{idx}' (first seen on line {idx_seen[idx]})"
                    )
                else:
                    idx_seen[idx] = line_number

    if not has_header:
        warnings.append("Missing column header comment lines")
    if n_data == 0:
        warnings.append(f"No data lines in {path.name}")

    is_valid = len(errors) == 0
    if strict and len(warnings) > 0:
        is_valid = False

    return is_valid, errors, warnings


def load_output_dir(output_dir: Union[str, Path]) -> Dict[TabularKind, pd.DataFrame]:
    """Read every tabular file present in an annotation output directory.

    Raises:
        FileNotFoundError: If the directory doesn't exist
    """
    out = Path(output_dir)
    if not out.is_dir():
        raise FileNotFoundError(f"Output directory not found: {output_dir}")
    tables: Dict[TabularKind, pd.DataFrame] = {}
    for kind in TabularKind:
        path = output_path(out, kind)
        if path.exists():
            tables[kind] = read_tabular(path, kind)
    return tables
