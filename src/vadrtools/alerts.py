"""
Alert catalog and per-sequence pass/fail determination.

Every alert is raised either against a whole sequence or against one
feature of it. Fatal alerts (``causes_failure``) make the sequence FAIL.
Some alerts always cause failure and cannot be overridden; some sequence
alerts also prevent any annotation. An alert may be hidden from the
feature table when one of its ``ftbl_invalid_by`` alerts is also present.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class AlertScope(Enum):
    """What an alert is raised against."""
    SEQUENCE = "sequence"
    FEATURE = "feature"


@dataclass
class Alert:
    """One alert code and its failure semantics.

    Attributes:
        code: Eight character alert code (e.g. "lowcovrg")
        scope: Raised per sequence or per feature
        sdesc: Short description (e.g. "LOW_COVERAGE")
        ldesc: Long description
        always_fails: Always causes failure, cannot be overridden
        causes_failure: Causes the sequence to FAIL
        prevents_annot: Prevents annotation of the sequence
        ftbl_invalid_by: Codes that hide this alert in the feature table
    """
    code: str
    scope: AlertScope
    sdesc: str
    ldesc: str
    always_fails: bool = False
    causes_failure: bool = False
    prevents_annot: bool = False
    ftbl_invalid_by: List[str] = field(default_factory=list)


class AlertCatalog:
    """Ordered collection of alerts."""

    def __init__(self):
        self._alerts: "OrderedDict[str, Alert]" = OrderedDict()

    def add(
        self,
        code: str,
        scope: str,
        sdesc: str,
        ldesc: str,
        always_fails: bool = False,
        causes_failure: bool = False,
        prevents_annot: bool = False,
        ftbl_invalid_by: Optional[Iterable[str]] = None,
    ) -> Alert:
        """Add an alert to the catalog.

        Raises:
            ValueError: On a duplicate code, unknown scope, or inconsistent flags
        """
        if code in self._alerts:
            raise ValueError(f"Alert code {code} already exists")
        try:
            scope_enum = AlertScope(scope) if not isinstance(scope, AlertScope) else scope
        except ValueError:
            raise ValueError(f"Alert {code}: scope must be 'sequence' or 'feature', got {scope!r}")
        if always_fails and not causes_failure:
            raise ValueError(f"Alert {code}: always_fails requires causes_failure")
        if prevents_annot and scope_enum is not AlertScope.SEQUENCE:
            raise ValueError(f"Alert {code}: only sequence alerts can prevent annotation")

        alert = Alert(
            code=code,
            scope=scope_enum,
            sdesc=sdesc,
            ldesc=ldesc,
            always_fails=always_fails,
            causes_failure=causes_failure,
            prevents_annot=prevents_annot,
        )
        self._alerts[code] = alert
        if ftbl_invalid_by:
            self.set_ftbl_invalid_by(code, ftbl_invalid_by)
        return alert

    def set_ftbl_invalid_by(self, code: str, invalid_by: Iterable[str]) -> None:
        """Set which codes hide ``code`` in the feature table.

        Raises:
            ValueError: If a code is unknown or refers to itself
        """
        alert = self[code]
        codes = list(invalid_by)
        for other in codes:
            if other == code:
                raise ValueError(f"Alert {code} cannot be invalidated by itself")
            if other not in self._alerts:
                raise ValueError(f"Alert {code}: unknown invalidating code {other}")
        alert.ftbl_invalid_by = codes

    def set_causes_failure(self, code: str, value: bool) -> None:
        """Override whether ``code`` causes failure.

        Raises:
            ValueError: If the code is unknown, or always fails and value is False
        """
        alert = self[code]
        if alert.always_fails and not value:
            raise ValueError(f"Alert {code} always causes failure and cannot be made to pass")
        alert.causes_failure = value
        logger.debug(f"Alert {code} causes_failure set to {value}")

    def apply_overrides(
        self,
        pass_codes: Optional[Iterable[str]] = None,
        fail_codes: Optional[Iterable[str]] = None,
    ) -> None:
        """Apply comma-list style pass/fail overrides.

        Raises:
            ValueError: If a code is listed as both pass and fail
        """
        pass_set = set(pass_codes or [])
        fail_set = set(fail_codes or [])
        both = pass_set & fail_set
        if both:
            raise ValueError(f"Alert codes listed as both pass and fail: {','.join(sorted(both))}")
        for code in pass_set:
            self.set_causes_failure(code, False)
        for code in fail_set:
            self.set_causes_failure(code, True)

    def sequence_passes(self, codes: Iterable[str]) -> bool:
        """False if any of ``codes`` causes failure."""
        return not any(self[code].causes_failure for code in codes)

    def fatal_codes(self, codes: Iterable[str]) -> List[str]:
        return [code for code in codes if self[code].causes_failure]

    def feature_table_codes(self, codes: Iterable[str]) -> List[str]:
        """Drop codes that another present code invalidates in the feature table."""
        present = list(codes)
        present_set = set(present)
        return [
            code for code in present
            if not any(other in present_set for other in self[code].ftbl_invalid_by)
        ]

    def codes(self, scope: Optional[AlertScope] = None) -> List[str]:
        return [
            code for code, alert in self._alerts.items()
            if scope is None or alert.scope is scope
        ]

    def index(self, code: str) -> int:
        """0-based position of a code in the catalog."""
        return list(self._alerts).index(code)

    def __getitem__(self, code: str) -> Alert:
        if code not in self._alerts:
            raise ValueError(f"Unknown alert code: {code}")
        return self._alerts[code]

    def __contains__(self, code: str) -> bool:
        return code in self._alerts

    def __iter__(self):
        return iter(self._alerts.values())

    def __len__(self) -> int:
        return len(self._alerts)

    def to_dict(self) -> Dict[str, Dict]:
        return {
            code: {
                "scope": alert.scope.value,
                "sdesc": alert.sdesc,
                "ldesc": alert.ldesc,
                "always_fails": alert.always_fails,
                "causes_failure": alert.causes_failure,
                "prevents_annot": alert.prevents_annot,
                "ftbl_invalid_by": list(alert.ftbl_invalid_by),
            }
            for code, alert in self._alerts.items()
        }

    def dump(self, stream: IO[str]) -> None:
        """Write the catalog as a column-aligned table."""
        # Imported here, the tabular package depends on this module
        from .tabular.writer import format_table

        def yes_no(value: bool) -> str:
            return "yes" if value else "no"

        columns = [
            "idx", "code", "short desc", "always fails", "fails",
            "prevents annot", "invalidated by", "long desc",
        ]
        rows = []
        for idx, alert in enumerate(self, start=1):
            rows.append([
                idx,
                alert.code,
                alert.sdesc,
                yes_no(alert.always_fails),
                yes_no(alert.causes_failure),
                yes_no(alert.prevents_annot),
                ",".join(alert.ftbl_invalid_by) if alert.ftbl_invalid_by else "-",
                alert.ldesc,
            ])
        stream.write(format_table(columns, rows, numeric_columns={"idx"}))


# (code, scope, sdesc, ldesc, always_fails, causes_failure, prevents_annot)
_DEFAULT_ALERTS = [
    ("noannotn", "sequence", "NO_ANNOTATION",
     "no significant similarity detected", True, True, True),
    ("revcompl", "sequence", "REVCOMPLEM",
     "sequence appears to be reverse complemented", True, True, True),
    ("qstsbgrp", "sequence", "QUESTIONABLE_SPECIFIED_SUBGROUP",
     "best overall model is not from specified subgroup", False, False, False),
    ("qstgroup", "sequence", "QUESTIONABLE_SPECIFIED_GROUP",
     "best overall model is not from specified group", False, False, False),
    ("incsbgrp", "sequence", "INCORRECT_SPECIFIED_SUBGROUP",
     "score difference too large between best overall model and best specified subgroup model",
     False, True, False),
    ("incgroup", "sequence", "INCORRECT_SPECIFIED_GROUP",
     "score difference too large between best overall model and best specified group model",
     False, True, False),
    ("lowcovrg", "sequence", "LOW_COVERAGE",
     "low sequence fraction with significant similarity to homology model", False, True, False),
    ("indfclas", "sequence", "INDEFINITE_CLASSIFICATION",
     "low score difference between best overall model and second best model "
     "(not in best model's subgroup)", False, False, False),
    ("lowscore", "sequence", "LOW_SCORE",
     "score to homology model below low threshold", False, False, False),
    ("biasdseq", "sequence", "BIASED_SEQUENCE",
     "high fraction of score attributed to biased sequence composition", False, False, False),
    ("dupregin", "sequence", "DUPLICATE_REGIONS",
     "similarity to a model region occurs more than once", False, True, False),
    ("discontn", "sequence", "DISCONTINUOUS_SIMILARITY",
     "not all hits are in the same order in the sequence and the homology model",
     False, True, False),
    ("indfstrn", "sequence", "INDEFINITE_STRAND",
     "significant similarity detected on both strands", False, True, False),
    ("lowsim5s", "sequence", "LOW_SIMILARITY_START",
     "significant similarity not detected at 5' end of the sequence", False, True, False),
    ("lowsim3s", "sequence", "LOW_SIMILARITY_END",
     "significant similarity not detected at 3' end of the sequence", False, True, False),
    ("lowsimis", "sequence", "LOW_SIMILARITY",
     "internal region without significant similarity", False, True, False),
    ("unexdivg", "sequence", "UNEXPECTED_DIVERGENCE",
     "sequence is too divergent to confidently assign nucleotide-based annotation",
     True, True, True),
    ("noftrann", "sequence", "NO_FEATURES_ANNOTATED",
     "sequence similarity to homology model does not overlap with any features",
     True, True, False),
    ("mutstart", "feature", "MUTATION_AT_START",
     "expected start codon could not be identified", False, True, False),
    ("mutendcd", "feature", "MUTATION_AT_END",
     "expected stop codon could not be identified, predicted CDS stop by homology is invalid",
     False, True, False),
    ("mutendns", "feature", "MUTATION_AT_END",
     "expected stop codon could not be identified, no in-frame stop codon exists 3' of "
     "predicted valid start codon", False, True, False),
    ("mutendex", "feature", "MUTATION_AT_END",
     "expected stop codon could not be identified, first in-frame stop codon exists 3' of "
     "predicted stop position", False, True, False),
    ("unexleng", "feature", "UNEXPECTED_LENGTH",
     "length of complete coding (CDS or mat_peptide) feature is not a multiple of 3",
     False, True, False),
    ("cdsstopn", "feature", "CDS_HAS_STOP_CODON",
     "in-frame stop codon exists 5' of stop position predicted by homology to reference",
     False, True, False),
    ("fsthicnf", "feature", "POSSIBLE_FRAMESHIFT_HIGH_CONF",
     "high confidence potential frameshift in CDS", False, False, False),
    ("fstlocnf", "feature", "POSSIBLE_FRAMESHIFT_LOW_CONF",
     "low confidence potential frameshift in CDS", False, False, False),
    ("cdsstopp", "feature", "CDS_HAS_STOP_CODON",
     "stop codon in protein-based alignment", False, True, False),
    ("peptrans", "feature", "PEPTIDE_TRANSLATION_PROBLEM",
     "mat_peptide may not be translated because its parent CDS has a problem",
     False, True, False),
    ("pepadjcy", "feature", "PEPTIDE_ADJACENCY_PROBLEM",
     "predictions of two mat_peptides expected to be adjacent are not adjacent",
     False, True, False),
    ("indfantp", "feature", "INDEFINITE_ANNOTATION",
     "protein-based search identifies CDS not identified in nucleotide-based search",
     False, True, False),
    ("indfantn", "feature", "INDEFINITE_ANNOTATION",
     "nucleotide-based search identifies CDS not identified in protein-based search",
     False, True, False),
    ("indf5gap", "feature", "INDEFINITE_ANNOTATION_START",
     "alignment to homology model is a gap at 5' boundary", False, True, False),
    ("indf5loc", "feature", "INDEFINITE_ANNOTATION_START",
     "alignment to homology model has low confidence at 5' boundary", False, True, False),
    ("indf5plg", "feature", "INDEFINITE_ANNOTATION_START",
     "protein-based alignment extends past nucleotide-based alignment at 5' end",
     False, True, False),
    ("indf5pst", "feature", "INDEFINITE_ANNOTATION_START",
     "protein-based alignment does not extend close enough to nucleotide-based alignment "
     "5' endpoint", False, True, False),
    ("indf3gap", "feature", "INDEFINITE_ANNOTATION_END",
     "alignment to homology model is a gap at 3' boundary", False, True, False),
    ("indf3loc", "feature", "INDEFINITE_ANNOTATION_END",
     "alignment to homology model has low confidence at 3' boundary", False, True, False),
    ("indf3plg", "feature", "INDEFINITE_ANNOTATION_END",
     "protein-based alignment extends past nucleotide-based alignment at 3' end",
     False, True, False),
    ("indf3pst", "feature", "INDEFINITE_ANNOTATION_END",
     "protein-based alignment does not extend close enough to nucleotide-based alignment "
     "3' endpoint", False, True, False),
    ("indfstrp", "feature", "INDEFINITE_STRAND",
     "strand mismatch between protein-based and nucleotide-based predictions",
     False, True, False),
    ("insertnp", "feature", "INSERTION_OF_NT",
     "too large of an insertion in protein-based alignment", False, True, False),
    ("deletinp", "feature", "DELETION_OF_NT",
     "too large of a deletion in protein-based alignment", False, True, False),
    ("lowsim5f", "feature", "LOW_FEATURE_SIMILARITY_START",
     "region within annotated feature at 5' end of sequence lacks significant similarity",
     False, True, False),
    ("lowsim3f", "feature", "LOW_FEATURE_SIMILARITY_END",
     "region within annotated feature at 3' end of sequence lacks significant similarity",
     False, True, False),
    ("lowsimif", "feature", "LOW_FEATURE_SIMILARITY",
     "region within annotated feature lacks significant similarity", False, True, False),
]

_DEFAULT_INVALIDATED_BY = {
    "mutendcd": ["cdsstopn", "mutendex", "mutendns"],
    "noftrann": ["unexdivg"],
}


def default_catalog() -> AlertCatalog:
    """Build the standard alert catalog."""
    catalog = AlertCatalog()
    for code, scope, sdesc, ldesc, always_fails, causes_failure, prevents_annot in _DEFAULT_ALERTS:
        catalog.add(
            code,
            scope,
            sdesc,
            ldesc,
            always_fails=always_fails,
            causes_failure=causes_failure,
            prevents_annot=prevents_annot,
        )
    for code, invalid_by in _DEFAULT_INVALIDATED_BY.items():
        catalog.set_ftbl_invalid_by(code, invalid_by)
    return catalog


def parse_code_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated list of alert codes."""
    if not value:
        return []
    return [code.strip() for code in value.split(",") if code.strip()]
