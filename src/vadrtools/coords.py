"""
Coordinate strings for model features and sequence regions.

A segment is written ``<start>..<stop>:<strand>`` with 1-based inclusive
positions. On the ``-`` strand start is greater than or equal to stop. A
start may carry a ``<`` and a stop a ``>`` to mark 5' and 3' truncation.
A coords string is one or more segments joined by commas, listed in 5' to
3' order.

Examples:
    >>> coords_from_location("complement(join(1..200,300..400))")
    '400..300:-,200..1:-'
    >>> relative_to_absolute("11..100:+", "6..38:+")
    '16..48:+'
"""

import re
from typing import List, Optional, Tuple

SEGMENT_RE = re.compile(r"^(<?)(\d+)\.\.(>?)(\d+):([+-])$")
LOCATION_RANGE_RE = re.compile(r"^(<?)(\d+)\.\.(>?)(\d+)$")
LOCATION_POINT_RE = re.compile(r"^([<>]?)(\d+)$")

STRANDS = ("+", "-")


def _parse_segment_with_markers(segment: str) -> Tuple[str, int, str, int, str]:
    """Split a segment into (start_marker, start, stop_marker, stop, strand)."""
    match = SEGMENT_RE.match(segment.strip())
    if match is None:
        raise ValueError(f"Unable to parse coords segment: {segment!r}")
    start_marker, start, stop_marker, stop, strand = match.groups()
    return start_marker, int(start), stop_marker, int(stop), strand


def parse_segment(segment: str) -> Tuple[int, int, str]:
    """Parse one segment into (start, stop, strand).

    Truncation markers are accepted and dropped.

    Raises:
        ValueError: If the segment is malformed
    """
    _, start, _, stop, strand = _parse_segment_with_markers(segment)
    return start, stop, strand


def split_coords(coords: str) -> List[str]:
    """Return the segments of a coords string."""
    if coords is None or coords.strip() == "":
        raise ValueError("Empty coords string")
    return [sgm.strip() for sgm in coords.split(",")]


def parse_coords(coords: str) -> List[Tuple[int, int, str]]:
    """Parse every segment of a coords string."""
    return [parse_segment(sgm) for sgm in split_coords(coords)]


def create_segment(start, stop, strand: str) -> str:
    """Build a segment string.

    ``start`` may be given as ``"<N"`` and ``stop`` as ``">N"``.

    Raises:
        ValueError: If an endpoint or the strand is invalid
    """
    start_str = str(start)
    stop_str = str(stop)
    if not re.match(r"^<?\d+$", start_str):
        raise ValueError(f"Invalid segment start: {start_str!r}")
    if not re.match(r"^>?\d+$", stop_str):
        raise ValueError(f"Invalid segment stop: {stop_str!r}")
    if strand not in STRANDS:
        raise ValueError(f"Invalid segment strand: {strand!r}")
    return f"{start_str}..{stop_str}:{strand}"


def append_segment(coords: Optional[str], segment: str) -> str:
    """Append a segment to a (possibly empty) coords string."""
    if not coords:
        return segment
    return f"{coords},{segment}"


def segment_length(segment: str) -> int:
    """Number of positions in one segment."""
    start, stop, _ = parse_segment(segment)
    return abs(start - stop) + 1


def coords_length(coords: str) -> int:
    """Total number of positions covered by a coords string."""
    return sum(abs(start - stop) + 1 for start, stop, _ in parse_coords(coords))


def start_stop_strand_lists(coords: str) -> Tuple[List[int], List[int], List[str]]:
    """Return parallel lists of segment starts, stops and strands."""
    starts, stops, strands = [], [], []
    for start, stop, strand in parse_coords(coords):
        starts.append(start)
        stops.append(stop)
        strands.append(strand)
    return starts, stops, strands


def _split_top_level(text: str) -> List[str]:
    """Split on commas that are not nested inside parentheses."""
    parts = []
    depth = 0
    current = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def coords_from_location(location: str, keep_markers: bool = False) -> str:
    """Convert a GenBank location string into a coords string.

    Args:
        location: Location such as ``join(1..200,complement(<300..400))``
        keep_markers: Keep ``<`` and ``>`` truncation markers

    Returns:
        Coords string

    Raises:
        ValueError: If the location cannot be parsed
    """
    location = location.strip()

    join_match = re.match(r"^join\((.+)\)$", location)
    if join_match:
        return coords_from_location(join_match.group(1), keep_markers)

    comp_match = re.match(r"^complement\((.+)\)$", location)
    if comp_match:
        inner = coords_from_location(comp_match.group(1), keep_markers)
        return reverse_complement(inner, keep_markers)

    parts = _split_top_level(location)
    if len(parts) > 1:
        coords = ""
        for part in parts:
            coords = append_segment(coords, coords_from_location(part, keep_markers))
        return coords

    range_match = LOCATION_RANGE_RE.match(location)
    if range_match:
        start_marker, start, stop_marker, stop = range_match.groups()
        if not keep_markers:
            start_marker = stop_marker = ""
        return create_segment(f"{start_marker}{start}", f"{stop_marker}{stop}", "+")

    point_match = LOCATION_POINT_RE.match(location)
    if point_match:
        marker, pos = point_match.groups()
        if not keep_markers:
            marker = ""
        start_marker = marker if marker == "<" else ""
        stop_marker = marker if marker == ">" else ""
        return create_segment(f"{start_marker}{pos}", f"{stop_marker}{pos}", "+")

    raise ValueError(f"Unable to parse location: {location!r}")


def reverse_complement(coords: str, keep_markers: bool = False) -> str:
    """Reverse complement a coords string.

    Each segment has its endpoints swapped and its strand flipped, and the
    segment order is reversed. With ``keep_markers`` a ``>`` on the stop
    becomes a ``<`` on the new start and vice versa.
    """
    result = ""
    for segment in reversed(split_coords(coords)):
        start_marker, start, stop_marker, stop, strand = _parse_segment_with_markers(segment)
        new_strand = "-" if strand == "+" else "+"
        new_start = str(stop)
        new_stop = str(start)
        if keep_markers:
            if stop_marker:
                new_start = "<" + new_start
            if start_marker:
                new_stop = ">" + new_stop
        result = append_segment(result, create_segment(new_start, new_stop, new_strand))
    return result


def coords_min(coords: str) -> int:
    """Minimum position in a coords string."""
    return min(min(start, stop) for start, stop, _ in parse_coords(coords))


def coords_max(coords: str) -> int:
    """Maximum position in a coords string."""
    return max(max(start, stop) for start, stop, _ in parse_coords(coords))


def five_prime_most(coords: str) -> int:
    """Position of the 5'-most nucleotide (start of first segment)."""
    return parse_coords(coords)[0][0]


def three_prime_most(coords: str) -> int:
    """Position of the 3'-most nucleotide (stop of last segment)."""
    return parse_coords(coords)[-1][1]


def summary_strand(coords: str) -> str:
    """Return ``+`` or ``-`` if all segments share a strand, else ``!``."""
    strands = {strand for _, _, strand in parse_coords(coords)}
    if len(strands) == 1:
        return strands.pop()
    return "!"


def coords_missing(coords: Optional[str], strand: str, length: int) -> str:
    """Coords of every region of 1..length not covered on ``strand``.

    Segments on the other strand are ignored. Gaps are listed in ascending
    order as ``low..high:<strand>`` regardless of strand.

    Returns:
        Coords string, empty if every position is covered

    Raises:
        ValueError: If a position lies outside 0..length
    """
    if strand not in STRANDS:
        raise ValueError(f"Invalid strand: {strand!r}")

    covered = [False] * (length + 1)
    if coords:
        for start, stop, sgm_strand in parse_coords(coords):
            for pos in (start, stop):
                if pos < 0 or pos > length:
                    raise ValueError(
                        f"Position {pos} in {coords} outside of sequence range 0..{length}"
                    )
            if sgm_strand != strand:
                continue
            low, high = min(start, stop), max(start, stop)
            for pos in range(max(low, 1), high + 1):
                covered[pos] = True

    missing = ""
    run_start = None
    for pos in range(1, length + 1):
        if not covered[pos] and run_start is None:
            run_start = pos
        elif covered[pos] and run_start is not None:
            missing = append_segment(missing, create_segment(run_start, pos - 1, strand))
            run_start = None
    if run_start is not None:
        missing = append_segment(missing, create_segment(run_start, length, strand))
    return missing


def segment_overlap(segment1: str, segment2: str) -> int:
    """Number of positions shared by two segments on the same strand."""
    start1, stop1, strand1 = parse_segment(segment1)
    start2, stop2, strand2 = parse_segment(segment2)
    if strand1 != strand2:
        return 0
    if strand1 == "-":
        start1, stop1 = stop1, start1
        start2, stop2 = stop2, start2
    return max(0, min(stop1, stop2) - max(start1, start2) + 1)


def coords_spans(coords1: str, coords2: str) -> bool:
    """True if every segment of coords2 lies completely inside a segment of coords1."""
    segments1 = split_coords(coords1)
    for segment2 in split_coords(coords2):
        length2 = segment_length(segment2)
        if not any(segment_overlap(segment1, segment2) == length2 for segment1 in segments1):
            return False
    return True


def merge_two_if_adjacent(segment1: str, segment2: str) -> Optional[str]:
    """Merge two segments if segment2 directly continues segment1.

    Both segments must share a strand and a direction. A ``+`` segment
    with start <= stop runs forward, a ``-`` segment with start >= stop runs
    backward, and the reverse of either runs the other way.

    Returns:
        The merged segment, or None if the segments are not adjacent
    """
    start1, stop1, strand1 = parse_segment(segment1)
    start2, stop2, strand2 = parse_segment(segment2)
    if strand1 != strand2:
        return None
    forward1 = _is_forward(start1, stop1, strand1)
    if forward1 != _is_forward(start2, stop2, strand2):
        return None
    if (forward1 and start2 == stop1 + 1) or (not forward1 and start2 == stop1 - 1):
        return create_segment(start1, stop2, strand1)
    return None


def _is_forward(start: int, stop: int, strand: str) -> bool:
    if strand == "+":
        return start <= stop
    return start < stop


def merge_adjacent_segments(coords: str) -> str:
    """Merge every run of adjacent segments in a coords string."""
    segments = split_coords(coords)
    merged = [segments[0]]
    for segment in segments[1:]:
        combined = merge_two_if_adjacent(merged[-1], segment)
        if combined is None:
            merged.append(segment)
        else:
            merged[-1] = combined
    return ",".join(merged)


def max_length_segment(coords: str) -> Tuple[str, int]:
    """Return the longest segment and its length (first one wins ties)."""
    best_segment = ""
    best_length = 0
    for segment in split_coords(coords):
        length = segment_length(segment)
        if length > best_length:
            best_segment, best_length = segment, length
    return best_segment, best_length


def relative_to_absolute(abs_coords: str, rel_coords: str) -> str:
    """Map coords relative to a feature onto absolute sequence coords.

    Args:
        abs_coords: Absolute coords of the feature (single strand)
        rel_coords: Coords relative to the feature start (single strand).
            A ``-`` strand relative segment maps to the reverse
            complement of the region it covers.

    Returns:
        Absolute coords with adjacent segments merged

    Raises:
        ValueError: On mixed strands or relative positions beyond the
            feature length
    """
    if summary_strand(abs_coords) == "!":
        raise ValueError(f"Absolute coords have mixed strands: {abs_coords}")
    if summary_strand(rel_coords) == "!":
        raise ValueError(f"Relative coords have mixed strands: {rel_coords}")
    abs_segments = parse_coords(abs_coords)
    abs_length = coords_length(abs_coords)

    result = ""
    for rel_start, rel_stop, rel_strand in parse_coords(rel_coords):
        if rel_strand == "-":
            rel_start, rel_stop = rel_stop, rel_start
        if rel_start > rel_stop:
            raise ValueError(f"Relative segment runs against its strand: {rel_coords}")
        if rel_start < 1 or rel_stop > abs_length:
            raise ValueError(
                f"Relative coords {rel_coords} exceed length {abs_length} of {abs_coords}"
            )
        converted = ""
        offset = 0
        for abs_start, abs_stop, strand in abs_segments:
            sgm_length = abs(abs_start - abs_stop) + 1
            first = max(rel_start, offset + 1)
            last = min(rel_stop, offset + sgm_length)
            if first <= last:
                if strand == "+":
                    new_start = abs_start + (first - offset - 1)
                    new_stop = abs_start + (last - offset - 1)
                else:
                    new_start = abs_start - (first - offset - 1)
                    new_stop = abs_start - (last - offset - 1)
                converted = append_segment(converted, create_segment(new_start, new_stop, strand))
            offset += sgm_length
        if rel_strand == "-":
            converted = reverse_complement(converted)
        result = append_segment(result, converted)

    return merge_adjacent_segments(result)


def protein_to_nucleotide(pt_coords: str) -> str:
    """Convert protein coords to the nucleotide coords of their codons."""
    result = ""
    for start, stop, strand in parse_coords(pt_coords):
        if strand != "+":
            raise ValueError(f"Protein coords must be on the + strand: {pt_coords}")
        result = append_segment(result, create_segment(start * 3 - 2, stop * 3, "+"))
    return result


def protein_relative_to_absolute(abs_nt_coords: str, rel_pt_coords: str) -> str:
    """Map protein coords relative to a CDS onto absolute nucleotide coords.

    Examples:
        >>> protein_relative_to_absolute("100..11:-", "2..11:+")
        '97..68:-'
    """
    return relative_to_absolute(abs_nt_coords, protein_to_nucleotide(rel_pt_coords))
