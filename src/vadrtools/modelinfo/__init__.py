"""
vadrtools model info: models, features and segments.

Example Usage:
    >>> from vadrtools.modelinfo import parse_model_info, finalize_features
    >>> models = parse_model_info("NC_039477.minfo")
    >>> for model in models:
    ...     finalize_features(model)
"""

# Data models
from .models import (
    DERIVED_FEATURE_KEYS,
    GBNULL,
    GBSEP,
    PARENT_SEP,
    Feature,
    ModelInfo,
    Segment,
)

# Feature information
from .features import (
    assign_parent_by_span,
    children,
    count_type,
    feature_type_index,
    finalize_features,
    impute_3pa_ftr_idx,
    impute_by_overlap,
    impute_coords,
    impute_length,
    impute_outname,
    initialize_parent_index_strings,
    integerize_parent_index_strings,
    is_cds,
    is_cds_or_mat_peptide,
    is_cds_or_mat_peptide_or_gene,
    is_gene,
    is_mat_peptide,
    merge_feature_info,
    num_segments,
    parent_indices,
    parent_reference,
    populate_segments,
    position_specific_values,
    relative_segment_index,
    summarize_segment,
    type_and_type_index,
    validate_coords,
    validate_parent_index_strings,
)

# File I/O
from .minfo import (
    format_feature_line,
    format_model_line,
    parse_model_info,
    write_model_info,
)


__all__ = [
    # Models
    "DERIVED_FEATURE_KEYS",
    "GBNULL",
    "GBSEP",
    "PARENT_SEP",
    "Feature",
    "ModelInfo",
    "Segment",
    # Features
    "assign_parent_by_span",
    "children",
    "count_type",
    "feature_type_index",
    "finalize_features",
    "impute_3pa_ftr_idx",
    "impute_by_overlap",
    "impute_coords",
    "impute_length",
    "impute_outname",
    "initialize_parent_index_strings",
    "integerize_parent_index_strings",
    "is_cds",
    "is_cds_or_mat_peptide",
    "is_cds_or_mat_peptide_or_gene",
    "is_gene",
    "is_mat_peptide",
    "merge_feature_info",
    "num_segments",
    "parent_indices",
    "parent_reference",
    "populate_segments",
    "position_specific_values",
    "relative_segment_index",
    "summarize_segment",
    "type_and_type_index",
    "validate_coords",
    "validate_parent_index_strings",
    # I/O
    "format_feature_line",
    "format_model_line",
    "parse_model_info",
    "write_model_info",
]
