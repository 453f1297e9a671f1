"""Shared fixtures: a small, consistent annotation output directory."""

import sys
from pathlib import Path

import pytest

# Add src to path for vadrtools imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from vadrtools.tabular import TabularKind, output_path, write_tabular


SQA_ROWS = [
    [1, "seqA", 100, "PASS", "yes", "NC_1", "Dengue", "-", 1, 0, 0, 0, 1, "-"],
    [2, "seqB", 100, "FAIL", "yes", "NC_1", "Dengue", "-", 1, 0, 0, 0, 1, "-"],
    [3, "seqC", 90, "FAIL", "yes", "NC_2", "-", "-", 0, 0, 0, 0, 0, "lowcovrg(LOW_COVERAGE)"],
    [4, "seqD", 50, "FAIL", "no", "-", "-", "-", "-", "-", "-", "-", "-", "noannotn(NO_ANNOTATION)"],
]

ALT_ROWS = [
    ["1.1.1", "seqA", "NC_1", "CDS", "polyprotein", 1, "fsthicnf", "no",
     "POSSIBLE_FRAMESHIFT_HIGH_CONF",
     "high confidence possible frameshift in CDS (frame not restored before end) [S:31..34(4),M:30]"],
    ["2.1.1", "seqB", "NC_1", "CDS", "polyprotein", 1, "cdsstopn", "yes",
     "CDS_HAS_STOP_CODON",
     "in-frame stop codon exists 5' of stop position predicted by homology to reference [TAA, shifted S:3,M:3]"],
    ["3.1.1", "seqC", "NC_2", "-", "-", "-", "lowcovrg", "yes",
     "LOW_COVERAGE",
     "low sequence fraction with significant similarity to homologous model [0.800<0.900]"],
    ["4.1.1", "seqD", "-", "-", "-", "-", "noannotn", "yes",
     "NO_ANNOTATION",
     "no significant similarity detected"],
]

ALC_ROWS = [
    [1, "noannotn", "yes", "NO_ANNOTATION", "sequence", 1, 1, "no significant similarity detected"],
    [2, "lowcovrg", "yes", "LOW_COVERAGE", "sequence", 1, 1,
     "low sequence fraction with significant similarity to homologous model"],
    [3, "cdsstopn", "yes", "CDS_HAS_STOP_CODON", "feature", 1, 1,
     "in-frame stop codon exists 5' of stop position predicted by homology to reference"],
    [4, "fsthicnf", "no", "POSSIBLE_FRAMESHIFT_HIGH_CONF", "feature", 1, 1,
     "high confidence possible frameshift in CDS (frame not restored before end)"],
]

MDL_ROWS = [
    [1, "NC_1", "Dengue", "-", 2, 1, 1],
    [2, "NC_2", "-", "-", 1, 0, 1],
    ["-", "*all*", "-", "-", 4, 1, 3],
    ["-", "*none*", "-", "-", 1, 0, 1],
]

SGM_ROWS = [
    ["1.1.1", "seqA", 100, "PASS", "NC_1", "CDS", "polyprotein", 1, 1, 1,
     1, 90, 1, 90, 90, "+", "no", "-", "-", "no", "no"],
    ["2.1.1", "seqB", 100, "FAIL", "NC_1", "CDS", "polyprotein", 1, 2, 1,
     1, 40, 1, 40, 40, "+", "no", 0.95, 1.0, "no", "no"],
    ["2.1.2", "seqB", 100, "FAIL", "NC_1", "CDS", "polyprotein", 1, 2, 2,
     45, 90, 45, 90, 46, "+", "no", 1.0, 0.9, "no", "no"],
]

FASTA_TEXT = (
    ">seqA\n" + "A" * 100 + "\n"
    ">seqB\n" + "C" * 60 + "\n" + "C" * 40 + "\n"
    ">seqC\n" + "G" * 90 + "\n"
    ">seqD\n" + "T" * 50 + "\n"
)


@pytest.fixture
def sample_tables():
    """Row lists for a consistent run, keyed by tabular kind."""
    return {
        TabularKind.SQA: [list(row) for row in SQA_ROWS],
        TabularKind.ALT: [list(row) for row in ALT_ROWS],
        TabularKind.ALC: [list(row) for row in ALC_ROWS],
        TabularKind.MDL: [list(row) for row in MDL_ROWS],
        TabularKind.SGM: [list(row) for row in SGM_ROWS],
    }


@pytest.fixture
def write_output_dir(tmp_path):
    """Return a function that writes tables into tmp_path/run."""
    def _write(tables):
        out = tmp_path / "run"
        out.mkdir(exist_ok=True)
        for kind, rows in tables.items():
            write_tabular(output_path(out, kind), kind, rows)
        return out
    return _write


@pytest.fixture
def output_dir(sample_tables, write_output_dir):
    """A consistent annotation output directory."""
    return write_output_dir(sample_tables)


@pytest.fixture
def fasta_file(tmp_path):
    """Input FASTA matching the sample sequence lengths."""
    path = tmp_path / "input.fa"
    path.write_text(FASTA_TEXT)
    return path


# 60 nt reference: gene 1..60, CDS 4..57 (M + 16 K + stop), two mat_peptides
REFERENCE_SEQ = "ggg" + "atg" + "aaa" * 16 + "taa" + "ccc"


def _locus_line(name, length):
    return (
        "LOCUS" + " " * 7 + name.ljust(16) + " " + str(length).rjust(11) + " bp "
        + "   " + "RNA".ljust(6) + "  " + "linear".ljust(8) + " VRL 01-JAN-2020"
    )


def _origin_lines(seq):
    lines = ["ORIGIN"]
    for start in range(0, len(seq), 60):
        chunk = seq[start:start + 60]
        blocks = " ".join(chunk[i:i + 10] for i in range(0, len(chunk), 10))
        lines.append(f"{start + 1:>9} {blocks}")
    return lines


def genbank_text(name="TEST01", seq=REFERENCE_SEQ):
    """A minimal GenBank record for the reference sequence."""
    lines = [
        _locus_line(name, len(seq)),
        "DEFINITION  Test virus, complete genome.",
        f"ACCESSION   {name}",
        f"VERSION     {name}.1",
        "KEYWORDS    RefSeq.",
        "SOURCE      Test virus",
        "  ORGANISM  Test virus",
        "            Viruses.",
        "FEATURES             Location/Qualifiers",
        f"     source          1..{len(seq)}",
        '                     /organism="Test virus"',
        '                     /mol_type="genomic RNA"',
        f"     gene            1..{len(seq)}",
        '                     /gene="POLY"',
        "     CDS             4..57",
        '                     /product="polyprotein"',
        '                     /codon_start=1',
        '                     /translation="MKKKKKKKKKKKKKKKK"',
        "     mat_peptide     4..30",
        '                     /product="capsid"',
        "     mat_peptide     31..57",
        '                     /product="envelope"',
        "     misc_feature    58..60",
        '                     /note="tail"',
    ]
    lines.extend(_origin_lines(seq))
    lines.append("//")
    return "\n".join(lines) + "\n"


@pytest.fixture
def reference_files(tmp_path):
    """Reference FASTA and GenBank files for accession TEST01."""
    fasta = tmp_path / "ref.fa"
    fasta.write_text(">TEST01.1 Test virus\n" + REFERENCE_SEQ.upper() + "\n")
    gb = tmp_path / "ref.gb"
    gb.write_text(genbank_text())
    return fasta, gb
