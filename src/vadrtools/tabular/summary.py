"""
Summary tables derived from per-alert and per-sequence tables.

The .alc table counts alert instances and affected sequences per code;
the .mdl table counts sequences, and how many pass or fail, per best
matching model.
"""

from typing import Dict, List, Optional

import pandas as pd

from ..alerts import AlertCatalog, default_catalog
from .models import TabularKind, column_names

ALL_MODELS = "*all*"
NO_MODEL = "*none*"


def pass_fail_counts(sqa: pd.DataFrame) -> Dict[str, int]:
    """Count sequences by pass/fail status.

    Returns:
        Dictionary with 'total', 'pass', 'fail' and 'annotated' counts
    """
    return {
        "total": int(len(sqa)),
        "pass": int((sqa["p/f"] == "PASS").sum()),
        "fail": int((sqa["p/f"] == "FAIL").sum()),
        "annotated": int((sqa["ant"] == "yes").sum()),
    }


def summarize_alerts(alt: pd.DataFrame, catalog: Optional[AlertCatalog] = None) -> pd.DataFrame:
    """Build the .alc table from the .alt table.

    Only codes that occur are reported, in catalog order.
    """
    if catalog is None:
        catalog = default_catalog()

    rows = []
    present = set(alt["alert code"]) if not alt.empty else set()
    idx = 0
    for alert in catalog:
        if alert.code not in present:
            continue
        idx += 1
        subset = alt[alt["alert code"] == alert.code]
        rows.append({
            "idx": idx,
            "alert code": alert.code,
            "causes failure": "yes" if alert.causes_failure else "no",
            "short description": alert.sdesc,
            "per type": alert.scope.value,
            "num cases": int(len(subset)),
            "num seqs": int(subset["seq name"].nunique()),
            "long description": alert.ldesc,
        })
    return pd.DataFrame(rows, columns=column_names(TabularKind.ALC))


def summarize_models(sqa: pd.DataFrame) -> pd.DataFrame:
    """Build the .mdl table from the .sqa table.

    Models are ordered by number of sequences, most first. A ``*all*`` row
    totals every sequence and a ``*none*`` row counts sequences with no
    best model, when there are any.
    """
    rows = []
    annotated = sqa[sqa["best model"] != "-"]
    unannotated = sqa[sqa["best model"] == "-"]

    counts = annotated.groupby("best model", sort=False).size()
    ordered = sorted(counts.index, key=lambda model: (-counts[model], model))

    for idx, model in enumerate(ordered, start=1):
        subset = annotated[annotated["best model"] == model]
        first = subset.iloc[0]
        rows.append({
            "idx": idx,
            "model": model,
            "group": first["grp"],
            "subgroup": first["subgrp"],
            "num seqs": int(len(subset)),
            "num pass": int((subset["p/f"] == "PASS").sum()),
            "num fail": int((subset["p/f"] == "FAIL").sum()),
        })

    totals = pass_fail_counts(sqa)
    rows.append({
        "idx": "-",
        "model": ALL_MODELS,
        "group": "-",
        "subgroup": "-",
        "num seqs": totals["total"],
        "num pass": totals["pass"],
        "num fail": totals["fail"],
    })
    if len(unannotated) > 0:
        rows.append({
            "idx": "-",
            "model": NO_MODEL,
            "group": "-",
            "subgroup": "-",
            "num seqs": int(len(unannotated)),
            "num pass": int((unannotated["p/f"] == "PASS").sum()),
            "num fail": int((unannotated["p/f"] == "FAIL").sum()),
        })
    return pd.DataFrame(rows, columns=column_names(TabularKind.MDL))


def alerts_by_sequence(alt: pd.DataFrame) -> Dict[str, List[str]]:
    """Map each sequence name to its alert codes, in file order."""
    result: Dict[str, List[str]] = {}
    for seq_name, code in zip(alt["seq name"], alt["alert code"]):
        result.setdefault(seq_name, []).append(code)
    return result


def expected_pass_fail(
    sqa: pd.DataFrame,
    alt: pd.DataFrame,
    catalog: Optional[AlertCatalog] = None,
    use_file_fail_column: bool = True,
) -> Dict[str, str]:
    """Derive PASS/FAIL per sequence from its alerts.

    Args:
        sqa: Per-sequence table
        alt: Per-alert table
        catalog: Alert catalog, used when use_file_fail_column is False
        use_file_fail_column: Trust the .alt 'fail' column, which reflects
            any pass/fail overrides the run used

    Returns:
        Dictionary mapping sequence name to "PASS" or "FAIL"
    """
    if catalog is None:
        catalog = default_catalog()
    failing = set()
    for _, row in alt.iterrows():
        if use_file_fail_column:
            fatal = row["fail"] == "yes"
        else:
            fatal = catalog[row["alert code"]].causes_failure
        if fatal:
            failing.add(row["seq name"])
    return {name: ("FAIL" if name in failing else "PASS") for name in sqa["seq name"]}
