"""
Validation utilities for annotation output directories and model files.

Each tabular file is first checked on its own, then the files are checked
against each other: every sequence named in one table must exist in the
.sqa table, PASS/FAIL must agree with the fatal alerts, and the .alc and
.mdl summaries must match counts derived from .alt and .sqa.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from Bio import SeqIO

from .alerts import AlertCatalog, default_catalog
from .modelinfo import parse_model_info, validate_coords
from .tabular import (
    ALL_MODELS,
    NO_MODEL,
    TabularKind,
    expected_pass_fail,
    load_output_dir,
    output_path,
    summarize_alerts,
    summarize_models,
    validate_tabular,
)


def validate_output_dir(
    output_dir: Union[str, Path],
    fasta_path: Optional[Union[str, Path]] = None,
    catalog: Optional[AlertCatalog] = None,
    strict: bool = False,
) -> Tuple[bool, List[str], List[str]]:
    """
    Validate the tabular files of an annotation output directory.

    Args:
        output_dir: Output directory of an annotation run
        fasta_path: Optional input FASTA, to check sequence lengths
        catalog: Alert catalog (default catalog if not given)
        strict: If True, treat warnings as errors

    Returns:
        Tuple of (is_valid, errors, warnings)
        - is_valid: True if the directory passes validation
        - errors: List of critical error messages
        - warnings: List of warning messages
    """
    errors: List[str] = []
    warnings: List[str] = []

    out = Path(output_dir)
    if not out.is_dir():
        errors.append(f"Output directory not found: {output_dir}")
        return False, errors, warnings

    if catalog is None:
        catalog = default_catalog()

    # Per-file structure
    present = []
    for kind in TabularKind:
        path = output_path(out, kind)
        if not path.exists():
            continue
        present.append(kind)
        _, file_errors, file_warnings = validate_tabular(path, kind, catalog)
        errors.extend(f"{path.name}: {e}" for e in file_errors)
        warnings.extend(f"{path.name}: {w}" for w in file_warnings)

    if not present:
        errors.append(f"No tabular output files found in {output_dir}")
        return False, errors, warnings

    # Cross-file checks need parseable tables
    if errors:
        return False, errors, warnings

    tables = load_output_dir(out)
    sqa = tables.get(TabularKind.SQA)
    alt = tables.get(TabularKind.ALT)

    if sqa is None:
        warnings.append("No .sqa file, skipping cross-file checks")
    else:
        seq_names = set(sqa["seq name"])
        if len(seq_names) != len(sqa):
            errors.append(".sqa: duplicate sequence names")

        for kind in (TabularKind.ALT, TabularKind.FTR, TabularKind.SGM, TabularKind.SQC):
            if kind not in tables:
                continue
            unknown = sorted(set(tables[kind]["seq name"]) - seq_names)
            for name in unknown:
                errors.append(f".{kind.value}: sequence {name} not in .sqa")

        sqa_pf = dict(zip(sqa["seq name"], sqa["p/f"]))

        if alt is not None:
            expected = expected_pass_fail(sqa, alt, catalog)
            for name, status in expected.items():
                if sqa_pf[name] != status:
                    errors.append(
                        f"Sequence {name}: .sqa says {sqa_pf[name]} but its alerts imply {status}"
                    )
            for _, row in alt.iterrows():
                code = row["alert code"]
                if (row["fail"] == "yes") != catalog[code].causes_failure:
                    warnings.append(
                        f".alt {row['idx']}: fail={row['fail']} for {code} differs from the "
                        f"default, alert pass/fail overrides were likely used"
                    )

        for kind in (TabularKind.SQC, TabularKind.FTR, TabularKind.SGM):
            if kind not in tables:
                continue
            for name, status in zip(tables[kind]["seq name"], tables[kind]["p/f"]):
                if name in sqa_pf and sqa_pf[name] != status:
                    errors.append(f".{kind.value}: sequence {name} is {status}, .sqa says {sqa_pf[name]}")

        if TabularKind.MDL in tables:
            errors.extend(_compare_model_summary(tables[TabularKind.MDL], summarize_models(sqa)))

        if fasta_path:
            fasta_errors, fasta_warnings = _check_fasta_lengths(sqa, fasta_path)
            errors.extend(fasta_errors)
            warnings.extend(fasta_warnings)

    if alt is not None and TabularKind.ALC in tables:
        errors.extend(_compare_alert_summary(tables[TabularKind.ALC], summarize_alerts(alt, catalog)))

    if TabularKind.SGM in tables:
        errors.extend(_check_segment_counts(tables[TabularKind.SGM]))

    is_valid = len(errors) == 0
    if strict and len(warnings) > 0:
        is_valid = False

    return is_valid, errors, warnings


def _compare_alert_summary(alc, derived) -> List[str]:
    """Compare .alc counts with counts derived from .alt."""
    errors = []
    file_counts = {
        row["alert code"]: (int(row["num cases"]), int(row["num seqs"]))
        for _, row in alc.iterrows()
    }
    derived_counts = {
        row["alert code"]: (int(row["num cases"]), int(row["num seqs"]))
        for _, row in derived.iterrows()
    }
    for code in sorted(set(file_counts) | set(derived_counts)):
        found = file_counts.get(code, (0, 0))
        expected = derived_counts.get(code, (0, 0))
        if found != expected:
            errors.append(
                f".alc: {code} has {found[0]} cases in {found[1]} sequences, "
                f".alt has {expected[0]} cases in {expected[1]} sequences"
            )
    return errors


def _compare_model_summary(mdl, derived) -> List[str]:
    """Compare .mdl counts with counts derived from .sqa."""
    errors = []

    def counts(df) -> Dict[str, Tuple[int, int, int]]:
        return {
            row["model"]: (int(row["num seqs"]), int(row["num pass"]), int(row["num fail"]))
            for _, row in df.iterrows()
        }

    file_counts = counts(mdl)
    derived_counts = counts(derived)
    for model in sorted(set(file_counts) | set(derived_counts)):
        found = file_counts.get(model, (0, 0, 0))
        expected = derived_counts.get(model, (0, 0, 0))
        if found != expected:
            # an all-zero *none* row is allowed
            if model == NO_MODEL and found == (0, 0, 0) and model not in derived_counts:
                continue
            errors.append(
                f".mdl: {model} has seqs/pass/fail {found[0]}/{found[1]}/{found[2]}, "
                f".sqa implies {expected[0]}/{expected[1]}/{expected[2]}"
            )
    if ALL_MODELS in file_counts:
        n_seqs, n_pass, n_fail = file_counts[ALL_MODELS]
        if n_pass + n_fail != n_seqs:
            errors.append(f".mdl: {ALL_MODELS} pass + fail does not equal num seqs")
    return errors


def _check_segment_counts(sgm) -> List[str]:
    """Each feature must have as many .sgm lines as its 'num sgm' value."""
    errors = []
    for (seq_name, ftr_idx), group in sgm.groupby(["seq name", "ftr idx"], sort=False):
        expected = int(group["num sgm"].iloc[0])
        if len(group) != expected:
            errors.append(
                f".sgm: sequence {seq_name} feature {ftr_idx} has {len(group)} segments, "
                f"num sgm says {expected}"
            )
    return errors


def _check_fasta_lengths(sqa, fasta_path) -> Tuple[List[str], List[str]]:
    errors: List[str] = []
    warnings: List[str] = []
    if not os.path.exists(fasta_path):
        errors.append(f"FASTA file not found: {fasta_path}")
        return errors, warnings

    lengths = _parse_fasta_lengths(fasta_path)
    for name, length in zip(sqa["seq name"], sqa["seq len"]):
        if name not in lengths:
            warnings.append(f"Sequence {name} not found in {fasta_path}")
        elif int(length) != lengths[name]:
            errors.append(
                f"Sequence {name}: .sqa length {length} does not match FASTA length {lengths[name]}"
            )
    return errors, warnings


def _parse_fasta_lengths(fasta_path: Union[str, Path]) -> Dict[str, int]:
    """
    Parse FASTA file to get sequence lengths.

    Args:
        fasta_path: Path to FASTA file

    Returns:
        Dictionary mapping sequence IDs to lengths
    """
    return {record.id: len(record.seq) for record in SeqIO.parse(str(fasta_path), "fasta")}


def validate_model_dir(
    model_dir: Union[str, Path],
    minfo_path: Optional[Union[str, Path]] = None,
) -> Tuple[bool, List[str], List[str]]:
    """
    Validate a model directory built by vadrtools-build.

    Checks the model info file parses, feature coords fit each model, and
    the files it names exist.

    Args:
        model_dir: Directory containing the model files
        minfo_path: Model info file (default: the only .minfo in model_dir)

    Returns:
        Tuple of (is_valid, errors, warnings)
    """
    errors: List[str] = []
    warnings: List[str] = []

    mdir = Path(model_dir)
    if not mdir.is_dir():
        errors.append(f"Model directory not found: {model_dir}")
        return False, errors, warnings

    if minfo_path is None:
        candidates = sorted(mdir.glob("*.minfo"))
        if len(candidates) != 1:
            errors.append(f"Expected exactly one .minfo file in {model_dir}, found {len(candidates)}")
            return False, errors, warnings
        minfo_path = candidates[0]

    try:
        models = parse_model_info(minfo_path)
    except (ValueError, FileNotFoundError) as e:
        errors.append(str(e))
        return False, errors, warnings

    for model in models:
        try:
            validate_coords(model.features, model.length)
        except ValueError as e:
            errors.append(f"Model {model.name}: {e}")

        cmfile = model.attributes.get("cmfile")
        if cmfile is None:
            warnings.append(f"Model {model.name} has no cmfile")
        elif not (mdir / cmfile).exists():
            warnings.append(f"Model {model.name}: {cmfile} not found (model not built?)")

        blastdb = model.attributes.get("blastdb")
        if blastdb is not None:
            for suffix in ("", ".phr", ".pin", ".psq"):
                if not (mdir / f"{blastdb}{suffix}").exists():
                    errors.append(f"Model {model.name}: protein database file {blastdb}{suffix} not found")

    return len(errors) == 0, errors, warnings
