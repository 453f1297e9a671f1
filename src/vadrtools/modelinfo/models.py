"""
Data models for model information.

A model is built from a single reference accession. It carries MODEL-level
attributes (length, model file names, group) and an ordered list of
features, each of which is split into one or more segments.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

# Separators used inside model info values
GBSEP = ":GBSEP:"
PARENT_SEP = "!GBSEP!"
GBNULL = "GBNULL"

# Keys computed from other keys, never written to a model info file
DERIVED_FEATURE_KEYS = (
    "length",
    "3pa_ftr_idx",
    "outname",
    "5p_sgm_idx",
    "3p_sgm_idx",
    "location",
)


@dataclass
class Feature:
    """One annotated feature of a model.

    Attributes:
        attributes: Ordered key/value pairs as stored in the model info
            file (``type``, ``coords``, ``parent_idx_str``, qualifiers)
        length: Total length of ``coords``
        outname: Name used in output (product, gene, or type.index)
        three_pa_ftr_idx: Index of the mat_peptide directly 3' of this one
        five_p_sgm_idx: Index of this feature's first segment
        three_p_sgm_idx: Index of this feature's last segment
    """
    attributes: Dict[str, str] = field(default_factory=dict)
    length: Optional[int] = None
    outname: Optional[str] = None
    three_pa_ftr_idx: int = -1
    five_p_sgm_idx: int = -1
    three_p_sgm_idx: int = -1

    @property
    def type(self) -> str:
        return self.attributes.get("type", "")

    @property
    def coords(self) -> str:
        return self.attributes.get("coords", "")

    @coords.setter
    def coords(self, value: str) -> None:
        self.attributes["coords"] = value

    @property
    def parent_idx_str(self) -> str:
        return self.attributes.get("parent_idx_str", GBNULL)

    @parent_idx_str.setter
    def parent_idx_str(self, value: str) -> None:
        self.attributes["parent_idx_str"] = value

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(key, default)

    def values(self, key: str) -> List[str]:
        """All values of a multi-valued key."""
        value = self.attributes.get(key)
        if value is None:
            return []
        return value.split(GBSEP)

    def __contains__(self, key: str) -> bool:
        return key in self.attributes

    def __getitem__(self, key: str) -> str:
        return self.attributes[key]

    def __setitem__(self, key: str, value: str) -> None:
        self.attributes[key] = value

    def __delitem__(self, key: str) -> None:
        del self.attributes[key]


@dataclass
class Segment:
    """A contiguous piece of a feature.

    Attributes:
        start: Start position (1-based, inclusive)
        stop: Stop position (1-based, inclusive)
        strand: "+" or "-"
        map_ftr: Index of the feature this segment belongs to
        is_5p: True if this is the feature's first segment
        is_3p: True if this is the feature's last segment
    """
    start: int
    stop: int
    strand: str
    map_ftr: int
    is_5p: bool = False
    is_3p: bool = False

    def __len__(self) -> int:
        return abs(self.start - self.stop) + 1

    @property
    def coords(self) -> str:
        return f"{self.start}..{self.stop}:{self.strand}"


@dataclass
class ModelInfo:
    """A model and its features.

    Attributes:
        name: Model name (usually the reference accession.version)
        attributes: MODEL line key/value pairs other than the name
        features: Ordered features
        segments: Flattened feature segments (see populate_segments)
    """
    name: str
    attributes: Dict[str, str] = field(default_factory=dict)
    features: List[Feature] = field(default_factory=list)
    segments: List[Segment] = field(default_factory=list)

    @property
    def length(self) -> int:
        """Model length in nucleotides."""
        if "length" not in self.attributes:
            raise ValueError(f"Model {self.name} has no length")
        return int(self.attributes["length"])

    @property
    def group(self) -> Optional[str]:
        return self.attributes.get("group")

    @property
    def subgroup(self) -> Optional[str]:
        return self.attributes.get("subgroup")

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def __len__(self) -> int:
        return len(self.features)
