"""
Feature information: imputation, validation and segment bookkeeping.

These functions operate on the ordered feature list of a model. Most of
them fill in values that can be derived from ``type`` and ``coords``, so a
model info file only has to store the minimum.
"""

import logging
import re
from typing import Dict, List, Optional

from .. import coords as vc
from .models import GBNULL, GBSEP, PARENT_SEP, Feature, ModelInfo, Segment

logger = logging.getLogger(__name__)


# =============================================================================
# Type predicates
# =============================================================================

def is_cds(feature: Feature) -> bool:
    return feature.type == "CDS"


def is_mat_peptide(feature: Feature) -> bool:
    return feature.type == "mat_peptide"


def is_gene(feature: Feature) -> bool:
    return feature.type == "gene"


def is_cds_or_mat_peptide(feature: Feature) -> bool:
    return feature.type in ("CDS", "mat_peptide")


def is_cds_or_mat_peptide_or_gene(feature: Feature) -> bool:
    return feature.type in ("CDS", "mat_peptide", "gene")


def count_type(features: List[Feature], ftr_type: str) -> int:
    """Number of features of a given type."""
    return sum(1 for ftr in features if ftr.type == ftr_type)


def feature_type_index(features: List[Feature], ftr_idx: int) -> int:
    """1-based index of a feature among features of the same type."""
    ftr_type = features[ftr_idx].type
    return sum(1 for ftr in features[: ftr_idx + 1] if ftr.type == ftr_type)


def type_and_type_index(features: List[Feature], ftr_idx: int, sep: str = ".") -> str:
    """E.g. ``CDS.2`` for the second CDS."""
    return f"{features[ftr_idx].type}{sep}{feature_type_index(features, ftr_idx)}"


# =============================================================================
# Imputation
# =============================================================================

def impute_coords(features: List[Feature]) -> None:
    """Fill in missing ``coords`` from ``location``.

    Raises:
        ValueError: If a feature has neither
    """
    for ftr_idx, ftr in enumerate(features):
        if "coords" in ftr:
            continue
        location = ftr.get("location")
        if location is None:
            raise ValueError(f"Feature {ftr_idx} ({ftr.type}) has neither coords nor location")
        ftr.coords = vc.coords_from_location(location)


def impute_length(features: List[Feature]) -> None:
    """Set each feature's length from its coords."""
    for ftr in features:
        ftr.length = vc.coords_length(ftr.coords)


def initialize_parent_index_strings(features: List[Feature]) -> None:
    """Set ``parent_idx_str`` to GBNULL where it is missing."""
    for ftr in features:
        if "parent_idx_str" not in ftr:
            ftr.parent_idx_str = GBNULL


def parent_reference(feature: Feature) -> str:
    """Provisional parent reference (``type:GBSEP:coords``) for a feature."""
    return f"{feature.type}{GBSEP}{feature.coords}"


def integerize_parent_index_strings(features: List[Feature]) -> None:
    """Convert provisional parent references into feature indices.

    A provisional ``parent_idx_str`` lists parents as ``type:GBSEP:coords``
    joined by ``!GBSEP!``. Each must match exactly one other feature.

    Raises:
        ValueError: If a reference matches no feature or several
    """
    for ftr_idx, ftr in enumerate(features):
        value = ftr.parent_idx_str
        if value == GBNULL or re.match(r"^\d+(,\d+)*$", value):
            continue
        indices = []
        for reference in value.split(PARENT_SEP):
            if GBSEP not in reference:
                raise ValueError(
                    f"Feature {ftr_idx}: unable to parse parent reference {reference!r}"
                )
            parent_type, parent_coords = reference.split(GBSEP, 1)
            matches = [
                idx for idx, other in enumerate(features)
                if idx != ftr_idx and other.type == parent_type and other.coords == parent_coords
            ]
            if not matches:
                raise ValueError(
                    f"Feature {ftr_idx}: no {parent_type} feature with coords {parent_coords}"
                )
            if len(matches) > 1:
                raise ValueError(
                    f"Feature {ftr_idx}: more than one {parent_type} feature "
                    f"with coords {parent_coords}"
                )
            indices.append(str(matches[0]))
        ftr.parent_idx_str = ",".join(indices)


def parent_indices(feature: Feature) -> List[int]:
    """Integer parent indices of a feature (empty for GBNULL)."""
    value = feature.parent_idx_str
    if value == GBNULL:
        return []
    return [int(idx) for idx in value.split(",")]


def assign_parent_by_span(features: List[Feature], child_type: str, parent_type: str) -> None:
    """Give features of child_type the shortest spanning parent_type feature as parent.

    Only features without a parent are considered. The parent is stored as
    a provisional reference; call integerize_parent_index_strings after.
    """
    for ftr in features:
        if ftr.type != child_type or ftr.parent_idx_str != GBNULL:
            continue
        candidates = [
            other for other in features
            if other.type == parent_type and vc.coords_spans(other.coords, ftr.coords)
        ]
        if not candidates:
            continue
        parent = min(candidates, key=lambda other: vc.coords_length(other.coords))
        ftr.parent_idx_str = parent_reference(parent)


def impute_outname(features: List[Feature]) -> None:
    """Name each feature after its product, else its gene, else type.index."""
    for ftr_idx, ftr in enumerate(features):
        if "product" in ftr:
            ftr.outname = ftr["product"]
        elif "gene" in ftr:
            ftr.outname = ftr["gene"]
        else:
            ftr.outname = type_and_type_index(features, ftr_idx)


def impute_3pa_ftr_idx(features: List[Feature]) -> None:
    """Find, for each mat_peptide, the mat_peptide immediately 3' of it."""
    for ftr_idx, ftr in enumerate(features):
        ftr.three_pa_ftr_idx = -1
        if not is_mat_peptide(ftr):
            continue
        strand = vc.summary_strand(ftr.coords)
        stop = vc.three_prime_most(ftr.coords)
        expected = stop + 1 if strand == "+" else stop - 1
        for other_idx, other in enumerate(features):
            if other_idx == ftr_idx or not is_mat_peptide(other):
                continue
            if vc.summary_strand(other.coords) != strand:
                continue
            if vc.five_prime_most(other.coords) == expected:
                ftr.three_pa_ftr_idx = other_idx
                break


def impute_by_overlap(
    features: List[Feature],
    src_type: str,
    src_key: str,
    dst_type: str,
    dst_key: Optional[str] = None,
) -> int:
    """Copy a value onto features from the shortest feature that spans them.

    For every feature of ``dst_type`` lacking ``dst_key``, find features of
    ``src_type`` with ``src_key`` whose coords span it, and copy the value
    from the shortest one.

    Returns:
        Number of features updated

    Raises:
        ValueError: If src_type equals dst_type, or two spanning sources
            share identical coords
    """
    if dst_key is None:
        dst_key = src_key
    if src_type == dst_type:
        raise ValueError(f"Source and destination types must differ, both are {src_type}")

    n_updated = 0
    for ftr_idx, ftr in enumerate(features):
        if ftr.type != dst_type or dst_key in ftr:
            continue
        candidates = [
            src for src in features
            if src.type == src_type and src_key in src and vc.coords_spans(src.coords, ftr.coords)
        ]
        if not candidates:
            continue
        seen_coords = set()
        for src in candidates:
            if src.coords in seen_coords:
                raise ValueError(
                    f"Two {src_type} features with identical coords {src.coords} "
                    f"span feature {ftr_idx}"
                )
            seen_coords.add(src.coords)
        best = min(candidates, key=lambda src: vc.coords_length(src.coords))
        ftr[dst_key] = best[src_key]
        n_updated += 1
        logger.debug(f"Set {dst_key}={best[src_key]} on {dst_type} {ftr.coords}")
    return n_updated


# =============================================================================
# Validation
# =============================================================================

def validate_coords(features: List[Feature], length: int) -> None:
    """Check that no feature extends beyond the model.

    Raises:
        ValueError: If any feature coords exceed ``length``
    """
    errors = []
    for ftr_idx, ftr in enumerate(features):
        if "coords" not in ftr:
            errors.append(f"Feature {ftr_idx} has no coords")
        elif vc.coords_max(ftr.coords) > length:
            errors.append(f"Feature {ftr_idx} coords {ftr.coords} exceed model length {length}")
    if errors:
        raise ValueError("\n".join(errors))


def validate_parent_index_strings(features: List[Feature]) -> None:
    """Check that parent indices are GBNULL or valid indices of other features.

    Raises:
        ValueError: On malformed or out-of-range indices
    """
    for ftr_idx, ftr in enumerate(features):
        value = ftr.parent_idx_str
        if value == GBNULL:
            continue
        if not re.match(r"^\d+(,\d+)*$", value):
            raise ValueError(f"Feature {ftr_idx}: invalid parent_idx_str {value!r}")
        for parent_idx in parent_indices(ftr):
            if parent_idx == ftr_idx or parent_idx >= len(features):
                raise ValueError(f"Feature {ftr_idx}: invalid parent index {parent_idx}")


def children(features: List[Feature], ftr_type: Optional[str] = None) -> List[List[int]]:
    """List, per feature, the indices of its children (optionally of one type)."""
    result: List[List[int]] = [[] for _ in features]
    for ftr_idx, ftr in enumerate(features):
        if ftr_type is not None and ftr.type != ftr_type:
            continue
        for parent_idx in parent_indices(ftr):
            result[parent_idx].append(ftr_idx)
    return result


# =============================================================================
# Segments
# =============================================================================

def populate_segments(model: ModelInfo) -> List[Segment]:
    """Build the segment list of a model and record each feature's segment range."""
    segments: List[Segment] = []
    for ftr_idx, ftr in enumerate(model.features):
        parsed = vc.parse_coords(ftr.coords)
        ftr.five_p_sgm_idx = len(segments)
        for i, (start, stop, strand) in enumerate(parsed):
            segments.append(
                Segment(
                    start=start,
                    stop=stop,
                    strand=strand,
                    map_ftr=ftr_idx,
                    is_5p=(i == 0),
                    is_3p=(i == len(parsed) - 1),
                )
            )
        ftr.three_p_sgm_idx = len(segments) - 1
    model.segments = segments
    return segments


def num_segments(feature: Feature) -> int:
    if feature.five_p_sgm_idx < 0:
        return len(vc.split_coords(feature.coords))
    return feature.three_p_sgm_idx - feature.five_p_sgm_idx + 1


def relative_segment_index(model: ModelInfo, sgm_idx: int) -> int:
    """1-based index of a segment within its feature."""
    ftr = model.features[model.segments[sgm_idx].map_ftr]
    return sgm_idx - ftr.five_p_sgm_idx + 1


def summarize_segment(model: ModelInfo, sgm_idx: int) -> str:
    """``", segment i of n"`` for multi-segment features, else an empty string."""
    ftr = model.features[model.segments[sgm_idx].map_ftr]
    n = num_segments(ftr)
    if n == 1:
        return ""
    return f", segment {relative_segment_index(model, sgm_idx)} of {n}"


# =============================================================================
# Misc
# =============================================================================

def merge_feature_info(src_features: List[Feature], dst_features: List[Feature]) -> None:
    """Merge key/value pairs of src_features into matching dst_features.

    A destination feature is consistent with a source feature when they
    share at least one key with an equal value and no key with a different
    value. Each source feature must be consistent with exactly one
    destination feature; keys it has that the destination lacks are copied.

    Raises:
        ValueError: If a source feature matches no destination or several
    """
    for src_idx, src in enumerate(src_features):
        consistent = []
        for dst_idx, dst in enumerate(dst_features):
            n_equal = 0
            n_conflict = 0
            for key, value in src.attributes.items():
                if key in dst:
                    if dst[key] == value:
                        n_equal += 1
                    else:
                        n_conflict += 1
            if n_equal >= 1 and n_conflict == 0:
                consistent.append(dst_idx)
        if not consistent:
            raise ValueError(
                f"Unable to find a feature consistent with added feature {src_idx} "
                f"({src.type} {src.coords})"
            )
        if len(consistent) > 1:
            raise ValueError(
                f"Added feature {src_idx} ({src.type} {src.coords}) is consistent with "
                f"more than one feature: {', '.join(str(i) for i in consistent)}"
            )
        dst = dst_features[consistent[0]]
        for key, value in src.attributes.items():
            if key not in dst:
                dst[key] = value


def position_specific_values(feature: Feature, key: str) -> Dict[int, str]:
    """Parse a ``pos:value;pos:value`` attribute into a dict.

    Raises:
        ValueError: If the value is malformed
    """
    result: Dict[int, str] = {}
    value = feature.get(key)
    if value is None:
        return result
    for token in value.split(";"):
        match = re.match(r"^(\d+):(\S+)$", token)
        if match is None:
            raise ValueError(f"Unable to parse {key} value {value!r}")
        result[int(match.group(1))] = match.group(2)
    return result


def finalize_features(model: ModelInfo) -> None:
    """Compute every derived value a loaded model needs."""
    impute_coords(model.features)
    impute_length(model.features)
    initialize_parent_index_strings(model.features)
    validate_parent_index_strings(model.features)
    impute_outname(model.features)
    impute_3pa_ftr_idx(model.features)
    populate_segments(model)
