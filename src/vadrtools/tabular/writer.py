"""
Column-aligned writing of tabular output files.

The header takes two comment lines: multi-word column names are split
across them, and a third comment line of dashes underlines each column.
Numeric columns are right-aligned, everything else left-aligned. The last
column is never padded.
"""

from pathlib import Path
from typing import IO, Any, Dict, Iterable, List, Optional, Sequence, Set, Union

import pandas as pd

from .models import COLUMNS, TabularKind, column_names

MISSING = "-"

RowsType = Union[pd.DataFrame, Iterable[Union[Sequence[Any], Dict[str, Any]]]]


def _format_value(value: Any) -> str:
    if value is None:
        return MISSING
    if isinstance(value, float):
        if pd.isna(value):
            return MISSING
        return f"{value:.3f}"
    text = str(value)
    return text if text != "" else MISSING


def _split_header(name: str) -> List[str]:
    """Split a column name into (top, bottom) header cells."""
    if " " in name:
        top, bottom = name.rsplit(" ", 1)
        return [top, bottom]
    return ["", name]


def _normalize_rows(columns: List[str], rows: RowsType) -> List[List[str]]:
    if isinstance(rows, pd.DataFrame):
        rows = rows[columns].itertuples(index=False, name=None)
    normalized = []
    for row in rows:
        if isinstance(row, dict):
            values = [row.get(col) for col in columns]
        else:
            values = list(row)
        if len(values) != len(columns):
            raise ValueError(f"Row has {len(values)} values, expected {len(columns)}: {values}")
        cells = [_format_value(value) for value in values]
        # only the last field may contain whitespace
        cells = ["_".join(cell.split()) for cell in cells[:-1]] + [cells[-1]]
        normalized.append(cells)
    return normalized


def format_table(
    columns: List[str],
    rows: RowsType,
    numeric_columns: Optional[Set[str]] = None,
) -> str:
    """Format rows as a column-aligned table with a commented header.

    Args:
        columns: Column names
        rows: DataFrame, dicts keyed by column name, or value sequences
        numeric_columns: Columns to right-align

    Returns:
        The table text, newline terminated
    """
    numeric_columns = numeric_columns or set()
    body = _normalize_rows(columns, rows)

    headers = [_split_header(name) for name in columns]
    headers[0] = ["#" + headers[0][0] if headers[0][0] else "#", "#" + headers[0][1]]

    widths = []
    for i, (top, bottom) in enumerate(headers):
        width = max(len(top), len(bottom))
        for cells in body:
            width = max(width, len(cells[i]))
        widths.append(width)

    def render(cells: List[str], right: Set[int], pad_last: bool = False) -> str:
        parts = []
        for i, cell in enumerate(cells):
            if i == len(cells) - 1 and not pad_last:
                parts.append(cell)
            elif i in right:
                parts.append(cell.rjust(widths[i]))
            else:
                parts.append(cell.ljust(widths[i]))
        return "  ".join(parts).rstrip()

    # data lines must not start with whitespace, so the first column is left-aligned
    right_idx = {i for i, name in enumerate(columns) if name in numeric_columns and i > 0}
    dashes = ["#" + "-" * (widths[0] - 1)] + ["-" * width for width in widths[1:]]

    lines = [
        render([top for top, _ in headers], set()),
        render([bottom for _, bottom in headers], set()),
        render(dashes, set()),
    ]
    for cells in body:
        lines.append(render(cells, right_idx))
    return "\n".join(lines) + "\n"


def format_tabular(kind: TabularKind, rows: RowsType) -> str:
    """Format rows of a given tabular kind."""
    numeric = {col.name for col in COLUMNS[kind] if col.is_numeric}
    return format_table(column_names(kind), rows, numeric_columns=numeric)


def write_tabular(
    destination: Union[str, Path, IO[str]],
    kind: TabularKind,
    rows: RowsType,
) -> None:
    """Write a tabular output file.

    Args:
        destination: Path or open text stream
        kind: Tabular kind, which fixes the columns
        rows: DataFrame, dicts keyed by column name, or value sequences
    """
    text = format_tabular(kind, rows)
    if hasattr(destination, "write"):
        destination.write(text)
    else:
        with open(destination, "w") as f:
            f.write(text)
