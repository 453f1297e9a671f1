"""
Model building pipeline.

Builds a model from one reference accession:

1. Fetch (or copy) the reference FASTA and GenBank record
2. Select feature types and qualifiers, merge in extra model info
3. Write a single-sequence Stockholm alignment
4. Derive feature information (lengths, parents, output names, segments)
5. Translate CDS and build the protein BLAST database and HMM library
6. Build, press and emit a consensus from the covariance model
7. Write the model info file

All output files are named ``<outdir>/<outdir name>.vadr.<suffix>``.
"""

import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from Bio import AlignIO, SeqIO
from Bio.Align import MultipleSeqAlignment
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from ..logging import attach_log_file, detach_handler, step
from ..modelinfo import (
    GBSEP,
    Feature,
    ModelInfo,
    assign_parent_by_span,
    count_type,
    feature_type_index,
    impute_3pa_ftr_idx,
    impute_by_overlap,
    impute_coords,
    impute_length,
    impute_outname,
    initialize_parent_index_strings,
    integerize_parent_index_strings,
    is_cds,
    merge_feature_info,
    num_segments,
    parse_model_info,
    populate_segments,
    validate_coords,
    validate_parent_index_strings,
    write_model_info,
)
from ..tabular import format_table
from .external import CommandRunner
from .genbank import extract_coords, features_from_record, read_genbank, translate_cds
from .ncbi import fetch_to_file

logger = logging.getLogger(__name__)

MAX_LENGTH = 25000

DEFAULT_FEATURE_TYPES = ("CDS", "gene", "mat_peptide")
DEFAULT_QUALIFIERS = (
    "type",
    "coords",
    "location",
    "product",
    "gene",
    "exception",
    "parent_idx_str",
    "5p_trunc",
    "3p_trunc",
)
GENE_IMPUTE_TYPES = ("CDS", "mRNA", "regulatory")


def split_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated option value."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class BuildOptions:
    """Options controlling a model build.

    Attributes mirror the vadrtools-build command line options.
    """
    force: bool = False
    verbose: bool = False
    keep: bool = False

    # input
    stk: Optional[Path] = None
    infa: Optional[Path] = None
    ingb: Optional[Path] = None
    addminfo: Optional[Path] = None
    forcelong: bool = False

    # feature types and qualifiers
    fall: bool = False
    fadd: List[str] = field(default_factory=list)
    fskip: List[str] = field(default_factory=list)
    qall: bool = False
    qadd: List[str] = field(default_factory=list)
    qftradd: List[str] = field(default_factory=list)
    qskip: List[str] = field(default_factory=list)
    noaddgene: bool = False

    # model info
    group: Optional[str] = None
    subgroup: Optional[str] = None
    ttbl: int = 1

    # cmbuild
    cmn: Optional[int] = None
    cmp7ml: bool = False
    cmere: Optional[float] = None
    cmeset: Optional[float] = None
    cmemaxseq: Optional[float] = None
    cminfile: Optional[Path] = None
    skipbuild: bool = False

    # extra output
    ftrinfo: bool = False
    sgminfo: bool = False

    def validate(self) -> None:
        """Check for incompatible options.

        Raises:
            ValueError: On an invalid combination
        """
        if self.subgroup and not self.group:
            raise ValueError("--subgroup requires --group")
        if self.fall and self.fadd:
            raise ValueError("--fall is incompatible with --fadd")
        if self.qall and self.qadd:
            raise ValueError("--qall is incompatible with --qadd")
        if self.qftradd and not self.qadd:
            raise ValueError("--qftradd requires --qadd")
        both = set(self.qadd) & set(self.qskip)
        if both:
            raise ValueError(f"Qualifiers listed in both --qadd and --qskip: {','.join(sorted(both))}")
        both = set(self.fadd) & set(self.fskip)
        if both:
            raise ValueError(f"Feature types listed in both --fadd and --fskip: {','.join(sorted(both))}")
        for attr in ("stk", "infa", "ingb", "addminfo", "cminfile"):
            value = getattr(self, attr)
            if value is not None and not Path(value).exists():
                raise FileNotFoundError(f"--{attr} file not found: {value}")
        if self.ttbl < 1:
            raise ValueError(f"--ttbl must be a positive integer, got {self.ttbl}")


class BuildPaths:
    """Names of the files written to a build output directory."""

    def __init__(self, out_dir: Union[str, Path]):
        self.out_dir = Path(out_dir)
        self.tail = self.out_dir.resolve().name
        self.root = self.out_dir / f"{self.tail}.vadr"

    def path(self, suffix: str) -> Path:
        return Path(f"{self.root}.{suffix}")

    def name(self, suffix: str) -> str:
        return self.path(suffix).name


class FileList:
    """Output files and their descriptions, written to the .filelist file."""

    def __init__(self):
        self.entries: List[Tuple[Path, str]] = []

    def add(self, path: Path, description: str) -> None:
        self.entries.append((path, description))

    def write(self, filepath: Path) -> None:
        width = max((len(p.name) for p, _ in self.entries), default=0)
        with open(filepath, "w") as f:
            for path, description in self.entries:
                f.write(f"{path.name.ljust(width)}  {description}\n")


# =============================================================================
# Steps
# =============================================================================

def prepare_output_dir(out_dir: Union[str, Path], force: bool = False) -> Path:
    """Create the output directory.

    Raises:
        FileExistsError: If it exists and force is False
    """
    path = Path(out_dir)
    if path.exists():
        if not force:
            raise FileExistsError(
                f"Output directory {out_dir} already exists, use -f to overwrite it"
            )
        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink()
    path.mkdir(parents=True)
    return path


def _clean_seq_id(seq_id: str) -> str:
    """Reduce ids like ``gi|123|ref|NC_1.1|`` to the accession.version."""
    if "|" in seq_id:
        fields = [f for f in seq_id.split("|") if f]
        return fields[-1]
    return seq_id


def load_reference_fasta(fasta_path: Path, accession: str) -> SeqRecord:
    """Read the reference FASTA and check it holds the requested accession.

    Raises:
        ValueError: If there is not exactly one sequence, or it is not the accession
    """
    records = list(SeqIO.parse(str(fasta_path), "fasta"))
    if len(records) != 1:
        raise ValueError(f"Expected exactly 1 sequence in {fasta_path}, found {len(records)}")
    record = records[0]
    record.id = _clean_seq_id(record.id)
    if record.id != accession and not record.id.startswith(accession + "."):
        raise ValueError(f"Sequence {record.id} in {fasta_path} does not match accession {accession}")
    return record


def select_feature_types(options: BuildOptions, features: List[Feature]) -> List[Feature]:
    """Keep features of the selected types, dropping truncated CDS.

    With ``--fall`` every type is kept except those in ``--fskip``.
    """
    keep = set(DEFAULT_FEATURE_TYPES) | set(options.fadd)
    skip = set(options.fskip)

    selected = []
    for ftr in features:
        if ftr.type in skip or (not options.fall and ftr.type not in keep):
            continue
        if is_cds(ftr) and ("5p_trunc" in ftr or "3p_trunc" in ftr):
            logger.warning(f"Skipping truncated CDS {ftr.coords} ({ftr.get('product', 'no product')})")
            continue
        selected.append(ftr)
    return selected


def convert_ribosomal_slippage(options: BuildOptions, features: List[Feature]) -> None:
    """Turn ribosomal_slippage flags into an exception qualifier.

    The flag itself is kept only under ``--qall`` or when listed in ``--qadd``.
    """
    keep_flag = options.qall or "ribosomal_slippage" in options.qadd
    for ftr in features:
        if "ribosomal_slippage" not in ftr:
            continue
        if not keep_flag:
            del ftr["ribosomal_slippage"]
        if "exception" in ftr:
            ftr["exception"] = ftr["exception"] + GBSEP + "ribosomal slippage"
        else:
            ftr["exception"] = "ribosomal slippage"


def select_qualifiers(options: BuildOptions, features: List[Feature]) -> None:
    """Drop qualifiers that were not selected.

    With ``--qall`` every qualifier is kept except those in ``--qskip``.
    """
    skip = set(options.qskip)
    for ftr in features:
        keep = set(DEFAULT_QUALIFIERS)
        if not options.qftradd or ftr.type in options.qftradd:
            keep |= set(options.qadd)
        for key in list(ftr.attributes):
            if key in skip or (not options.qall and key not in keep):
                del ftr[key]


def check_stockholm(stk_path: Path, sequence: str) -> bool:
    """Check a single-sequence Stockholm alignment against the reference.

    Returns:
        True if the alignment has consensus secondary structure

    Raises:
        ValueError: If the alignment is not a single gap-free copy of the reference
    """
    alignment = AlignIO.read(str(stk_path), "stockholm")
    if len(alignment) != 1:
        raise ValueError(f"Stockholm file {stk_path} must have exactly 1 sequence, found {len(alignment)}")
    aligned = str(alignment[0].seq)
    if re.search(r"[.\-~]", aligned):
        raise ValueError(f"Stockholm file {stk_path} sequence contains gaps")
    if aligned.upper().replace("U", "T") != sequence.upper().replace("U", "T"):
        raise ValueError(f"Stockholm file {stk_path} sequence does not match the reference sequence")
    return "secondary_structure" in alignment.column_annotations


def write_stockholm(stk_path: Path, record: SeqRecord) -> None:
    """Write the reference as a single-sequence Stockholm alignment."""
    alignment = MultipleSeqAlignment([SeqRecord(Seq(str(record.seq)), id=record.id, description="")])
    AlignIO.write(alignment, str(stk_path), "stockholm")


def derive_feature_info(model: ModelInfo, add_gene: bool = True) -> None:
    """Compute lengths, parents, output names, adjacency and segments."""
    features = model.features
    impute_coords(features)
    impute_length(features)
    initialize_parent_index_strings(features)
    assign_parent_by_span(features, "mat_peptide", "CDS")
    integerize_parent_index_strings(features)
    validate_parent_index_strings(features)
    if add_gene:
        for dst_type in GENE_IMPUTE_TYPES:
            impute_by_overlap(features, "gene", "gene", dst_type)
    impute_outname(features)
    impute_3pa_ftr_idx(features)
    populate_segments(model)
    validate_coords(features, model.length)


def write_cds_fastas(
    paths: BuildPaths,
    model: ModelInfo,
    record: SeqRecord,
    ttbl: int,
) -> Tuple[Path, Path, List[SeqRecord]]:
    """Write CDS nucleotide and protein FASTA files.

    Sequences are named ``<accession.version>/<coords>``.
    """
    cds_records = []
    protein_records = []
    for ftr in model.features:
        if not is_cds(ftr):
            continue
        name = f"{model.name}/{ftr.coords}"
        nucleotides = extract_coords(record.seq, ftr.coords)
        cds_records.append(SeqRecord(Seq(nucleotides), id=name, description=ftr.outname or ""))
        protein = translate_cds(nucleotides, ttbl)
        protein_records.append(SeqRecord(Seq(protein), id=name, description=ftr.outname or ""))

    cds_fa = paths.path("cds.fa")
    protein_fa = paths.path("protein.fa")
    SeqIO.write(cds_records, str(cds_fa), "fasta")
    SeqIO.write(protein_records, str(protein_fa), "fasta")
    return cds_fa, protein_fa, protein_records


def build_protein_library(
    paths: BuildPaths,
    runner: CommandRunner,
    protein_fa: Path,
    protein_records: List[SeqRecord],
    keep: bool = False,
) -> Path:
    """Build the protein BLAST database and pressed HMM library."""
    runner.run(["makeblastdb", "-in", protein_fa, "-dbtype", "prot"])

    hmm_path = paths.path("protein.hmm")
    single_files = []
    for i, protein in enumerate(protein_records, start=1):
        single_fa = paths.path(f"{i}.protein.fa")
        single_hmm = paths.path(f"{i}.protein.hmm")
        SeqIO.write([protein], str(single_fa), "fasta")
        runner.run(["hmmbuild", "--informat", "afa", "-n", protein.id, single_hmm, single_fa])
        single_files.extend([single_fa, single_hmm])

    with open(hmm_path, "w") as out:
        for single in single_files:
            if single.suffix == ".hmm" and single.exists():
                out.write(single.read_text())
    runner.run(["hmmpress", hmm_path])

    if not keep:
        for single in single_files:
            if single.exists():
                single.unlink()
    return hmm_path


def cmbuild_command(
    paths: BuildPaths,
    model: ModelInfo,
    options: BuildOptions,
    has_ss: bool,
) -> List[str]:
    """Assemble the cmbuild command line."""
    cmd = [
        "cmbuild",
        "-n", model.name,
        "--verbose",
        "--occfile", str(paths.path("cmbuild.occ")),
    ]
    if not has_ss:
        cmd.append("--noss")
    if options.cmn is not None:
        cmd.extend(["--EgfN", str(options.cmn)])
    if options.cmp7ml:
        cmd.append("--p7ml")
    if options.cmere is not None:
        cmd.extend(["--ere", str(options.cmere)])
    if options.cmeset is not None:
        cmd.extend(["--eset", str(options.cmeset)])
    if options.cmemaxseq is not None:
        cmd.extend(["--emaxseq", str(options.cmemaxseq)])
    if model.length > MAX_LENGTH / 2:
        cmd.extend(["--Egcmult", f"{MAX_LENGTH / model.length:.5f}"])
    if options.cminfile is not None:
        cmd.extend(Path(options.cminfile).read_text().split())
    cmd.extend([str(paths.path("cm")), str(paths.path("stk"))])
    return cmd


def build_nucleotide_models(
    paths: BuildPaths,
    runner: CommandRunner,
    model: ModelInfo,
    options: BuildOptions,
    has_ss: bool,
) -> None:
    """Build and press the covariance model and its consensus BLAST database."""
    runner.run(cmbuild_command(paths, model, options, has_ss), stdout_path=paths.path("cmbuild"))
    runner.run(["cmpress", paths.path("cm")])
    runner.run(["cmemit", "-c", paths.path("cm")], stdout_path=paths.path("nt-cseq.fa"))
    if not runner.dry_run:
        write_consensus_fasta(paths.path("nt-cseq.fa"), paths.path("nt.fa"), model.name)
    runner.run(["makeblastdb", "-in", paths.path("nt.fa"), "-dbtype", "nucl"])
    if not options.keep:
        for intermediate in (paths.path("cmbuild.occ"), paths.path("nt-cseq.fa")):
            if intermediate.exists():
                intermediate.unlink()


def write_consensus_fasta(cseq_path: Path, fasta_path: Path, model_name: str) -> None:
    """Rewrite the cmemit consensus sequence under the model name."""
    consensus = SeqIO.read(str(cseq_path), "fasta")
    record = SeqRecord(consensus.seq, id=model_name, description="")
    SeqIO.write([record], str(fasta_path), "fasta")


def feature_info_table(model: ModelInfo) -> str:
    """Table describing every feature, for --ftrinfo."""
    columns = ["idx", "type", "type idx", "outname", "length", "num sgm",
               "parent idx", "3pa ftr idx", "coords"]
    rows = []
    for ftr_idx, ftr in enumerate(model.features):
        rows.append([
            ftr_idx,
            ftr.type,
            feature_type_index(model.features, ftr_idx),
            ftr.outname,
            ftr.length,
            num_segments(ftr),
            ftr.parent_idx_str,
            ftr.three_pa_ftr_idx,
            ftr.coords,
        ])
    numeric = {"type idx", "length", "num sgm", "3pa ftr idx"}
    return format_table(columns, rows, numeric_columns=numeric)


def segment_info_table(model: ModelInfo) -> str:
    """Table describing every segment, for --sgminfo."""
    columns = ["idx", "start", "stop", "strand", "ftr idx", "5p", "3p", "coords"]
    rows = []
    for sgm_idx, sgm in enumerate(model.segments):
        rows.append([
            sgm_idx,
            sgm.start,
            sgm.stop,
            sgm.strand,
            sgm.map_ftr,
            "yes" if sgm.is_5p else "no",
            "yes" if sgm.is_3p else "no",
            sgm.coords,
        ])
    return format_table(columns, rows, numeric_columns={"start", "stop", "ftr idx"})


# =============================================================================
# Pipeline
# =============================================================================

def run_build(
    accession: str,
    out_dir: Union[str, Path],
    options: Optional[BuildOptions] = None,
    runner: Optional[CommandRunner] = None,
) -> ModelInfo:
    """Build a model for a reference accession.

    Args:
        accession: Reference accession (optionally with version)
        out_dir: Output directory to create
        options: Build options
        runner: Command runner for external programs

    Returns:
        The built model

    Raises:
        FileExistsError: If out_dir exists and options.force is False
        ValueError: On invalid options or input
        RuntimeError: If a fetch or an external command fails
    """
    options = options or BuildOptions()
    options.validate()

    prepare_output_dir(out_dir, options.force)
    paths = BuildPaths(out_dir)
    files = FileList()

    pkg_logger = logging.getLogger("vadrtools")
    log_handler = attach_log_file(pkg_logger, paths.path("log"))
    files.add(paths.path("log"), "Output printed to screen")
    cmd_file = paths.path("cmd")
    cmd_file.touch()
    files.add(cmd_file, "List of executed commands")
    if runner is None:
        runner = CommandRunner(cmd_file)
    elif runner.cmd_file is None:
        runner.cmd_file = cmd_file

    try:
        model = _run_build_steps(accession, paths, files, options, runner)
    finally:
        files.add(paths.path("filelist"), "List and description of all output files")
        files.write(paths.path("filelist"))
        detach_handler(pkg_logger, log_handler)
    return model


def _run_build_steps(
    accession: str,
    paths: BuildPaths,
    files: FileList,
    options: BuildOptions,
    runner: CommandRunner,
) -> ModelInfo:
    added_features: List[Feature] = []
    if options.addminfo:
        with step(logger, f"Parsing model info file {options.addminfo}"):
            for added_model in parse_model_info(options.addminfo, required_model_keys=[], required_feature_keys=[]):
                added_features.extend(added_model.features)

    fasta_path = paths.path("fa")
    with step(logger, "Fetching FASTA file" if options.infa is None else "Copying FASTA file"):
        if options.infa:
            shutil.copyfile(options.infa, fasta_path)
        else:
            fetch_to_file(fasta_path, accession, db="nuccore", rettype="fasta")
        record = load_reference_fasta(fasta_path, accession)
    files.add(fasta_path, "Fasta file of reference sequence")

    length = len(record.seq)
    if length > MAX_LENGTH and not options.forcelong:
        raise ValueError(
            f"Sequence length {length} exceeds maximum of {MAX_LENGTH}, use --forcelong to allow it"
        )

    model = ModelInfo(name=record.id, attributes={"length": str(length)})

    gb_path = paths.path("gb")
    with step(logger, "Fetching and parsing GenBank record" if options.ingb is None
              else "Parsing GenBank record"):
        if options.ingb:
            shutil.copyfile(options.ingb, gb_path)
        else:
            fetch_to_file(gb_path, record.id, db="nuccore", rettype="gb")
        gb_record = read_genbank(gb_path)
        if len(gb_record.seq) != length:
            raise ValueError(
                f"GenBank record length {len(gb_record.seq)} does not match FASTA length {length}"
            )
        features = features_from_record(gb_record)
    files.add(gb_path, "GenBank format file for reference sequence")

    with step(logger, "Pruning features and qualifiers"):
        features = select_feature_types(options, features)
        convert_ribosomal_slippage(options, features)
        select_qualifiers(options, features)
        if added_features:
            merge_feature_info(added_features, features)
        model.features = features

    stk_path = paths.path("stk")
    with step(logger, "Preparing Stockholm alignment"):
        if options.stk:
            has_ss = check_stockholm(options.stk, str(record.seq))
            alignment = AlignIO.read(str(options.stk), "stockholm")
            alignment[0].id = record.id
            AlignIO.write(alignment, str(stk_path), "stockholm")
        else:
            has_ss = False
            write_stockholm(stk_path, record)
    files.add(stk_path, "Stockholm alignment file for reference sequence")

    with step(logger, "Finalizing feature information"):
        derive_feature_info(model, add_gene=not options.noaddgene)
    logger.info(
        f"Model {model.name}: length {model.length}, {len(model.features)} features, "
        f"{count_type(model.features, 'CDS')} CDS"
    )

    n_cds = count_type(model.features, "CDS")
    if n_cds > 0:
        with step(logger, "Translating CDS and building protein BLAST database"):
            cds_fa, protein_fa, protein_records = write_cds_fastas(paths, model, record, options.ttbl)
            files.add(cds_fa, "Fasta file of CDS nucleotide sequences")
            files.add(protein_fa, "Fasta file of translated CDS, also the BLAST database")
            hmm_path = build_protein_library(paths, runner, protein_fa, protein_records, options.keep)
            files.add(hmm_path, "HMM library of translated CDS")
        model.attributes["blastdb"] = protein_fa.name
        if options.ttbl != 1:
            model.attributes["transl_table"] = str(options.ttbl)

    model.attributes["cmfile"] = paths.name("cm")
    if not options.skipbuild:
        with step(logger, "Building model (this could take a while)"):
            build_nucleotide_models(paths, runner, model, options, has_ss)
        files.add(paths.path("cm"), "Covariance model file")
        files.add(paths.path("cmbuild"), "cmbuild output file")
        files.add(paths.path("nt.fa"), "Consensus sequence, also the nucleotide BLAST database")
        if options.keep and paths.path("nt-cseq.fa").exists():
            files.add(paths.path("nt-cseq.fa"), "cmemit -c output")
    else:
        logger.info("Skipping model build (--skipbuild)")

    if options.group:
        model.attributes["group"] = options.group
    if options.subgroup:
        model.attributes["subgroup"] = options.subgroup

    minfo_path = paths.path("minfo")
    write_model_info(minfo_path, [model])
    files.add(minfo_path, "Model info file")

    if options.ftrinfo:
        paths.path("ftrinfo").write_text(feature_info_table(model))
        files.add(paths.path("ftrinfo"), "Feature information")
    if options.sgminfo:
        paths.path("sgminfo").write_text(segment_info_table(model))
        files.add(paths.path("sgminfo"), "Segment information")

    return model
