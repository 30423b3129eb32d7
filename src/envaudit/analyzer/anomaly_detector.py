"""Anomaly detection over a finished cross-reference index.

Three checks:
- ScopeMismatch: a Private symbol read from a publicly-exposed file. Such a
  read evaluates to an absent value at runtime instead of failing.
- TypoCandidate: a MISSING name within a small edit distance of a declared name.
- DeclaredWithoutValue: declared in some layer, valued in none, but used.

Usages in files of unknown context never produce a ScopeMismatch; they are
returned by `manual_review()` instead.
"""
import logging
from typing import List, Optional, Sequence, Tuple

from .classifier import Classifier
from .cross_reference import CrossReferenceIndex
from .models import (
    DECLARED_WITHOUT_VALUE,
    PRIVATE,
    PUBLICLY_EXPOSED,
    SCOPE_MISMATCH,
    TYPO_CANDIDATE,
    UNKNOWN_CONTEXT,
    Anomaly,
    Usage,
)

logger = logging.getLogger(__name__)


def edit_distance(a: str, b: str) -> int:
    """Optimal string alignment distance.

    Insertion, deletion, substitution and transposition of two adjacent
    characters each cost 1.
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    # Three rolling rows: i-2, i-1, i
    before_previous: List[int] = []
    previous = list(range(len(b) + 1))
    for i in range(1, len(a) + 1):
        current = [i] + [0] * len(b)
        for j in range(1, len(b) + 1):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            current[j] = min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            )
            if i > 1 and j > 1 and a[i - 1] == b[j - 2] and a[i - 2] == b[j - 1]:
                current[j] = min(current[j], before_previous[j - 2] + 1)
        before_previous, previous = previous, current
    return previous[len(b)]


def closest_name(name: str, candidates: Sequence[str]) -> Optional[Tuple[str, int]]:
    """Closest candidate and its distance; ties go to the lexicographically smallest."""
    best = None
    for candidate in sorted(candidates):
        distance = edit_distance(name, candidate)
        if best is None or distance < best[1]:
            best = (candidate, distance)
    return best


class AnomalyDetector:
    """Run every anomaly check against an index."""

    def __init__(self, classifier: Optional[Classifier] = None, max_distance: int = 2):
        self.classifier = classifier or Classifier()
        self.max_distance = max_distance

    def detect(self, index: CrossReferenceIndex) -> List[Anomaly]:
        """Return all anomalies sorted by (name, file, line, kind)."""
        anomalies: List[Anomaly] = []
        anomalies.extend(self._scope_mismatches(index))
        anomalies.extend(self._typo_candidates(index))
        anomalies.extend(self._declared_without_value(index))
        anomalies.sort(key=lambda anomaly: anomaly.sort_key)
        logger.debug("Detected %d anomalies", len(anomalies))
        return anomalies

    def manual_review(self, index: CrossReferenceIndex) -> List[Usage]:
        """Private-symbol usages whose file context could not be decided."""
        return [
            usage
            for record in index.values()
            if self.classifier.visibility(record.name) == PRIVATE
            for usage in record.usages
            if usage.context == UNKNOWN_CONTEXT
        ]

    def _scope_mismatches(self, index: CrossReferenceIndex) -> List[Anomaly]:
        anomalies = []
        for record in index.values():
            if self.classifier.visibility(record.name) != PRIVATE:
                continue
            reported_files = set()
            # One per file, located at the first read in that file
            for usage in record.usages:
                if usage.context == PUBLICLY_EXPOSED and usage.file not in reported_files:
                    reported_files.add(usage.file)
                    anomalies.append(Anomaly(
                        kind=SCOPE_MISMATCH,
                        name=record.name,
                        file=usage.file,
                        line=usage.line,
                    ))
        return anomalies

    def _typo_candidates(self, index: CrossReferenceIndex) -> List[Anomaly]:
        declared = index.declared_names
        anomalies = []
        if not declared:
            return anomalies

        for name in index.missing:
            record = index[name]
            match = closest_name(name, declared)
            if match is None or match[1] > self.max_distance:
                continue
            first_usage = record.usages[0]
            anomalies.append(Anomaly(
                kind=TYPO_CANDIDATE,
                name=name,
                file=first_usage.file,
                line=first_usage.line,
                suggested=match[0],
                distance=match[1],
            ))
        return anomalies

    def _declared_without_value(self, index: CrossReferenceIndex) -> List[Anomaly]:
        anomalies = []
        for record in index.values():
            if record.is_declared and record.usages and not record.effective_value_present:
                declaration = record.declarations[0]
                anomalies.append(Anomaly(
                    kind=DECLARED_WITHOUT_VALUE,
                    name=record.name,
                    file=declaration.source_file,
                    line=declaration.line_number,
                ))
        return anomalies
