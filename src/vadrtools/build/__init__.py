"""
vadrtools build: building a model from a reference accession.

Example Usage:
    >>> from vadrtools.build import BuildOptions, run_build
    >>> model = run_build("NC_039477", "NC_039477-out", BuildOptions(skipbuild=True))
"""

from .external import CommandRunner
from .genbank import (
    extract_coords,
    features_from_record,
    location_to_coords,
    read_genbank,
    translate_cds,
)
from .ncbi import efetch_url, fetch_to_file
from .pipeline import (
    DEFAULT_FEATURE_TYPES,
    DEFAULT_QUALIFIERS,
    MAX_LENGTH,
    BuildOptions,
    BuildPaths,
    build_nucleotide_models,
    check_stockholm,
    cmbuild_command,
    convert_ribosomal_slippage,
    derive_feature_info,
    feature_info_table,
    load_reference_fasta,
    prepare_output_dir,
    run_build,
    segment_info_table,
    select_feature_types,
    select_qualifiers,
    split_list,
    write_consensus_fasta,
    write_stockholm,
)


__all__ = [
    "CommandRunner",
    "extract_coords",
    "features_from_record",
    "location_to_coords",
    "read_genbank",
    "translate_cds",
    "efetch_url",
    "fetch_to_file",
    "DEFAULT_FEATURE_TYPES",
    "DEFAULT_QUALIFIERS",
    "MAX_LENGTH",
    "BuildOptions",
    "BuildPaths",
    "build_nucleotide_models",
    "check_stockholm",
    "cmbuild_command",
    "convert_ribosomal_slippage",
    "derive_feature_info",
    "feature_info_table",
    "load_reference_fasta",
    "prepare_output_dir",
    "run_build",
    "segment_info_table",
    "select_feature_types",
    "select_qualifiers",
    "split_list",
    "write_consensus_fasta",
    "write_stockholm",
]
