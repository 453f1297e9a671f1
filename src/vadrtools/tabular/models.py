"""
Column layouts of the annotation tabular output files.

Every kind shares the same rules: fields are separated by whitespace,
lines starting with ``#`` are comments, data lines never start with
whitespace or ``#``, and the final field may contain whitespace.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union


class TabularKind(Enum):
    """Tabular output file kinds, by filename suffix."""
    ALC = "alc"
    ALT = "alt"
    FTR = "ftr"
    MDL = "mdl"
    SGM = "sgm"
    SQA = "sqa"
    SQC = "sqc"


class ColumnType(Enum):
    """How values in a column are checked and converted."""
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    PASS_FAIL = "pass_fail"
    YES_NO = "yes_no"
    STRAND = "strand"
    ALERT_CODE = "alert_code"


@dataclass(frozen=True)
class ColumnSpec:
    """One column of a tabular file.

    Attributes:
        name: Column name as shown in the header
        type: Value type
        allow_missing: Whether "-" is accepted in place of a value
        choices: Allowed values, if restricted
    """
    name: str
    type: ColumnType = ColumnType.STRING
    allow_missing: bool = True
    choices: Optional[Tuple[str, ...]] = None

    @property
    def is_numeric(self) -> bool:
        return self.type in (ColumnType.INTEGER, ColumnType.FLOAT)


STR = ColumnType.STRING
INT = ColumnType.INTEGER
FLOAT = ColumnType.FLOAT

TRUNCATION_VALUES = ("no", "5'", "3'", "5'&3'")


def _col(name: str, ctype: ColumnType = STR, allow_missing: bool = True, choices=None) -> ColumnSpec:
    return ColumnSpec(name=name, type=ctype, allow_missing=allow_missing, choices=choices)


COLUMNS: Dict[TabularKind, List[ColumnSpec]] = {
    # alert counts, one line per alert code
    TabularKind.ALC: [
        _col("idx", INT, allow_missing=False),
        _col("alert code", ColumnType.ALERT_CODE, allow_missing=False),
        _col("causes failure", ColumnType.YES_NO, allow_missing=False),
        _col("short description", allow_missing=False),
        _col("per type", allow_missing=False, choices=("sequence", "feature")),
        _col("num cases", INT, allow_missing=False),
        _col("num seqs", INT, allow_missing=False),
        _col("long description"),
    ],
    # alerts, one line per alert instance
    TabularKind.ALT: [
        _col("idx", allow_missing=False),
        _col("seq name", allow_missing=False),
        _col("model"),
        _col("ftr type"),
        _col("ftr name"),
        _col("ftr idx", INT),
        _col("alert code", ColumnType.ALERT_CODE, allow_missing=False),
        _col("fail", ColumnType.YES_NO, allow_missing=False),
        _col("alert desc", allow_missing=False),
        _col("alert detail"),
    ],
    # features, one line per annotated feature
    TabularKind.FTR: [
        _col("idx", allow_missing=False),
        _col("seq name", allow_missing=False),
        _col("seq len", INT, allow_missing=False),
        _col("p/f", ColumnType.PASS_FAIL, allow_missing=False),
        _col("model", allow_missing=False),
        _col("ftr type", allow_missing=False),
        _col("ftr name", allow_missing=False),
        _col("ftr len", INT),
        _col("ftr idx", INT, allow_missing=False),
        _col("str", ColumnType.STRAND),
        _col("n from", INT),
        _col("n to", INT),
        _col("n instp", INT),
        _col("trc", choices=TRUNCATION_VALUES),
        _col("p from", INT),
        _col("p to", INT),
        _col("p instp", INT),
        _col("p sc", INT),
        _col("nsa", INT),
        _col("nsn", INT),
        _col("seq coords"),
        _col("mdl coords"),
        _col("ftr alerts"),
    ],
    # models, one line per model plus totals
    TabularKind.MDL: [
        _col("idx", INT),
        _col("model", allow_missing=False),
        _col("group"),
        _col("subgroup"),
        _col("num seqs", INT, allow_missing=False),
        _col("num pass", INT, allow_missing=False),
        _col("num fail", INT, allow_missing=False),
    ],
    # segments, one line per annotated feature segment
    TabularKind.SGM: [
        _col("idx", allow_missing=False),
        _col("seq name", allow_missing=False),
        _col("seq len", INT, allow_missing=False),
        _col("p/f", ColumnType.PASS_FAIL, allow_missing=False),
        _col("model", allow_missing=False),
        _col("ftr type", allow_missing=False),
        _col("ftr name", allow_missing=False),
        _col("ftr idx", INT, allow_missing=False),
        _col("num sgm", INT, allow_missing=False),
        _col("sgm idx", INT, allow_missing=False),
        _col("seq start", INT),
        _col("seq stop", INT),
        _col("mdl start", INT),
        _col("mdl stop", INT),
        _col("sgm len", INT),
        _col("str", ColumnType.STRAND),
        _col("trc", choices=TRUNCATION_VALUES),
        _col("5' pp", FLOAT),
        _col("3' pp", FLOAT),
        _col("5' gap", ColumnType.YES_NO),
        _col("3' gap", ColumnType.YES_NO),
    ],
    # sequence annotation summary, one line per sequence
    TabularKind.SQA: [
        _col("idx", INT, allow_missing=False),
        _col("seq name", allow_missing=False),
        _col("seq len", INT, allow_missing=False),
        _col("p/f", ColumnType.PASS_FAIL, allow_missing=False),
        _col("ant", ColumnType.YES_NO, allow_missing=False),
        _col("best model"),
        _col("grp"),
        _col("subgrp"),
        _col("nfa", INT),
        _col("nfn", INT),
        _col("nf5", INT),
        _col("nf3", INT),
        _col("nfalt", INT),
        _col("seq alerts"),
    ],
    # sequence classification summary, one line per sequence
    TabularKind.SQC: [
        _col("idx", INT, allow_missing=False),
        _col("seq name", allow_missing=False),
        _col("seq len", INT, allow_missing=False),
        _col("p/f", ColumnType.PASS_FAIL, allow_missing=False),
        _col("ant", ColumnType.YES_NO, allow_missing=False),
        _col("model1"),
        _col("grp1"),
        _col("subgrp1"),
        _col("score", FLOAT),
        _col("sc/nt", FLOAT),
        _col("seq cov", FLOAT),
        _col("mdl cov", FLOAT),
        _col("bias", INT),
        _col("num hits", INT),
        _col("str", ColumnType.STRAND),
        _col("model2"),
        _col("grp2"),
        _col("subgrp2"),
        _col("score diff", FLOAT),
        _col("diff/nt", FLOAT),
        _col("seq alerts"),
    ],
}

DESCRIPTIONS: Dict[TabularKind, str] = {
    TabularKind.ALC: "per-alert-code counts",
    TabularKind.ALT: "per-alert instances",
    TabularKind.FTR: "per-feature annotation",
    TabularKind.MDL: "per-model summary",
    TabularKind.SGM: "per-segment annotation",
    TabularKind.SQA: "per-sequence annotation summary",
    TabularKind.SQC: "per-sequence classification summary",
}


def column_names(kind: TabularKind) -> List[str]:
    return [col.name for col in COLUMNS[kind]]


def min_fields(kind: TabularKind) -> int:
    """Minimum number of whitespace-delimited fields on a data line."""
    return len(COLUMNS[kind])


def detect_kind(filepath: Union[str, Path]) -> TabularKind:
    """Detect the tabular kind from the file suffix.

    Raises:
        ValueError: If the suffix is not a known kind
    """
    suffix = Path(filepath).suffix.lower().lstrip(".")
    for kind in TabularKind:
        if kind.value == suffix:
            return kind
    raise ValueError(f"Cannot determine tabular file kind from file: {filepath}")


def output_path(output_dir: Union[str, Path], kind: Union[TabularKind, str]) -> Path:
    """Path of a file in an output directory: ``<dir>/<dir name>.vadr.<suffix>``."""
    out = Path(output_dir)
    suffix = kind.value if isinstance(kind, TabularKind) else kind
    return out / f"{out.resolve().name}.vadr.{suffix}"
