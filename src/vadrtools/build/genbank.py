"""
Reference record parsing.

Converts a GenBank record read with Bio.SeqIO into model features. Each
feature keeps its qualifiers, with multiple values joined by ``:GBSEP:``.
Partial features get ``5p_trunc``/``3p_trunc`` set to "yes", and flag
qualifiers such as ``/ribosomal_slippage`` get the same value.
"""

from pathlib import Path
from typing import List, Tuple, Union

from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqFeature import AfterPosition, BeforePosition
from Bio.SeqRecord import SeqRecord

from .. import coords as vc
from ..modelinfo import GBSEP, Feature

FLAG_VALUE = "yes"


def location_to_coords(location) -> Tuple[str, bool, bool]:
    """Convert a Biopython location into coords.

    Returns:
        Tuple of (coords, is_5p_truncated, is_3p_truncated)
    """
    coords = ""
    parts = location.parts
    for part in parts:
        start = int(part.start) + 1
        stop = int(part.end)
        if part.strand == -1:
            coords = vc.append_segment(coords, vc.create_segment(stop, start, "-"))
        else:
            coords = vc.append_segment(coords, vc.create_segment(start, stop, "+"))

    first, last = parts[0], parts[-1]
    if first.strand == -1:
        trunc5 = isinstance(first.end, AfterPosition)
    else:
        trunc5 = isinstance(first.start, BeforePosition)
    if last.strand == -1:
        trunc3 = isinstance(last.start, BeforePosition)
    else:
        trunc3 = isinstance(last.end, AfterPosition)
    return coords, trunc5, trunc3


def features_from_record(record: SeqRecord) -> List[Feature]:
    """Build model features from every non-source feature of a record."""
    features = []
    for seq_feature in record.features:
        if seq_feature.type == "source":
            continue
        coords, trunc5, trunc3 = location_to_coords(seq_feature.location)
        attributes = {"type": seq_feature.type, "coords": coords}
        if trunc5:
            attributes["5p_trunc"] = "yes"
        if trunc3:
            attributes["3p_trunc"] = "yes"
        for key, values in seq_feature.qualifiers.items():
            attributes[key] = GBSEP.join(str(value) or FLAG_VALUE for value in values)
        features.append(Feature(attributes=attributes))
    return features


def read_genbank(filepath: Union[str, Path]) -> SeqRecord:
    """Read a single-record GenBank file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file does not hold exactly one record
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"GenBank file not found: {filepath}")
    return SeqIO.read(str(path), "genbank")


def extract_coords(sequence: Union[str, Seq], coords: str) -> str:
    """Nucleotide sequence of coords, reverse complemented on the - strand."""
    seq = Seq(str(sequence))
    pieces = []
    for start, stop, strand in vc.parse_coords(coords):
        if strand == "+":
            pieces.append(str(seq[start - 1:stop]))
        else:
            pieces.append(str(seq[stop - 1:start].reverse_complement()))
    return "".join(pieces)


def translate_cds(nucleotides: str, table: int = 1) -> str:
    """Translate a CDS, dropping a trailing stop codon."""
    usable = len(nucleotides) - (len(nucleotides) % 3)
    protein = str(Seq(nucleotides[:usable]).translate(table=table))
    if protein.endswith("*"):
        protein = protein[:-1]
    return protein
