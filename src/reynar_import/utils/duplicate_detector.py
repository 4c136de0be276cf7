"""Scores imported candidates against the ledger for likely re-imports."""

import dataclasses
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Set

from rapidfuzz import fuzz

from ..models.core import ImportConfig, ParsedTransaction, Transaction


logger = logging.getLogger(__name__)

FULL_CONFIDENCE = 100
DUPLICATE_CONFIDENCE = 0

STRONG = 'strong'
WEAK = 'weak'
NONE = 'none'


@dataclass(frozen=True)
class MatchPair:
    """A candidate/existing pairing with its duplicate confidence"""
    candidate_index: int
    existing_index: int
    score: int
    date_distance: int

    @property
    def sort_key(self):
        return (self.score, self.date_distance, self.candidate_index, self.existing_index)


class DuplicateDetector:
    """Assigns each candidate a confidence that it is NOT already in the ledger.

    A candidate and an existing transaction form a pair only when their dates
    are at most ``date_tolerance_days`` apart and they agree on amount,
    description, or both. Pairs are assigned greedily from the most to the
    least convincing, and each existing transaction explains at most one
    candidate.
    """

    def __init__(self,
                 date_tolerance_days: int = 1,
                 strong_similarity_threshold: int = 90,
                 weak_similarity_threshold: int = 60,
                 weak_match_confidence: int = 40,
                 amount_match_confidence: int = 60,
                 description_match_confidence: int = 80,
                 contested_confidence: int = 50):
        """
        Initialize duplicate detector

        Args:
            date_tolerance_days: Maximum day distance between paired transactions
            strong_similarity_threshold: token_set_ratio at or above which descriptions match strongly
            weak_similarity_threshold: token_set_ratio at or above which descriptions match weakly
            weak_match_confidence: Confidence for date + amount + weak description
            amount_match_confidence: Confidence for date + amount with unrelated descriptions
            description_match_confidence: Confidence for date + strong description, different amount
            contested_confidence: Floor for candidates whose only partners went to other candidates
        """
        self.date_tolerance_days = date_tolerance_days
        self.strong_similarity_threshold = strong_similarity_threshold
        self.weak_similarity_threshold = weak_similarity_threshold
        self.weak_match_confidence = weak_match_confidence
        self.amount_match_confidence = amount_match_confidence
        self.description_match_confidence = description_match_confidence
        self.contested_confidence = contested_confidence

    @classmethod
    def from_config(cls, config: ImportConfig) -> 'DuplicateDetector':
        return cls(
            date_tolerance_days=config.date_tolerance_days,
            strong_similarity_threshold=config.strong_similarity_threshold,
            weak_similarity_threshold=config.weak_similarity_threshold,
            weak_match_confidence=config.weak_match_confidence,
            amount_match_confidence=config.amount_match_confidence,
            description_match_confidence=config.description_match_confidence,
            contested_confidence=config.contested_confidence,
        )

    def detect_duplicates(self,
                          candidates: List[ParsedTransaction],
                          existing: List[Transaction]) -> List[ParsedTransaction]:
        """
        Populate ``confidence`` on copies of the candidates

        Args:
            candidates: Freshly parsed transactions, in file order
            existing: Snapshot of the ledger; never modified

        Returns:
            New ParsedTransaction objects in the same order as ``candidates``
        """
        confidences = [FULL_CONFIDENCE] * len(candidates)
        pairs = self.find_matches(candidates, existing)

        used_candidates: Set[int] = set()
        used_existing: Set[int] = set()
        best_score = {}

        for pair in pairs:
            best_score.setdefault(pair.candidate_index, pair.score)
            if pair.candidate_index in used_candidates or pair.existing_index in used_existing:
                continue
            confidences[pair.candidate_index] = pair.score
            used_candidates.add(pair.candidate_index)
            used_existing.add(pair.existing_index)

        for index, score in best_score.items():
            if index not in used_candidates:
                confidences[index] = max(score, self.contested_confidence)
                logger.debug(f"Candidate {index} lost its matches to other candidates")

        flagged = sum(1 for c in confidences if c == DUPLICATE_CONFIDENCE)
        logger.info(f"Duplicate detection: {flagged} of {len(candidates)} candidates flagged")

        return [
            dataclasses.replace(candidate, confidence=confidence)
            for candidate, confidence in zip(candidates, confidences)
        ]

    def find_matches(self,
                     candidates: List[ParsedTransaction],
                     existing: List[Transaction]) -> List[MatchPair]:
        """All scoring pairs, most convincing first"""
        existing_keys = [
            (_as_date(e.date), _cents(e.signed_amount), self.normalize_description(e.description))
            for e in existing
        ]

        pairs = []
        for ci, candidate in enumerate(candidates):
            candidate_date = _as_date(candidate.date)
            candidate_cents = _cents(candidate.signed_amount)
            candidate_description = self.normalize_description(candidate.description)

            for ei, (existing_date, existing_cents, existing_description) in enumerate(existing_keys):
                distance = abs((candidate_date - existing_date).days)
                if distance > self.date_tolerance_days:
                    continue
                score = self._score(
                    candidate_cents == existing_cents,
                    self.description_similarity(candidate_description, existing_description)
                )
                if score is not None:
                    pairs.append(MatchPair(ci, ei, score, distance))

        pairs.sort(key=lambda p: p.sort_key)
        return pairs

    def score_pair(self, candidate: ParsedTransaction, existing: Transaction) -> int:
        """Confidence for one candidate against one existing transaction"""
        distance = abs((_as_date(candidate.date) - _as_date(existing.date)).days)
        if distance > self.date_tolerance_days:
            return FULL_CONFIDENCE
        score = self._score(
            _cents(candidate.signed_amount) == _cents(existing.signed_amount),
            self.description_similarity(
                self.normalize_description(candidate.description),
                self.normalize_description(existing.description)
            )
        )
        return FULL_CONFIDENCE if score is None else score

    def _score(self, amount_match: bool, similarity: str) -> Optional[int]:
        if amount_match:
            if similarity == STRONG:
                return DUPLICATE_CONFIDENCE
            if similarity == WEAK:
                return self.weak_match_confidence
            return self.amount_match_confidence
        if similarity == STRONG:
            return self.description_match_confidence
        return None

    def description_similarity(self, a: str, b: str) -> str:
        """Classify two normalized descriptions as strong, weak or no match"""
        if not a or not b:
            return NONE
        if a == b:
            return STRONG

        shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
        if len(shorter) >= 4 and shorter in longer:
            return STRONG

        ratio = fuzz.token_set_ratio(a, b)
        if ratio >= self.strong_similarity_threshold:
            return STRONG
        if ratio >= self.weak_similarity_threshold:
            return WEAK

        tokens_a = {t for t in a.split() if len(t) >= 3}
        tokens_b = {t for t in b.split() if len(t) >= 3}
        if tokens_a & tokens_b:
            return WEAK
        return NONE

    @staticmethod
    def normalize_description(description: Optional[str]) -> str:
        """Case-fold, strip punctuation and collapse whitespace"""
        if not description:
            return ''
        text = re.sub(r'[^\w\s]', ' ', description.casefold())
        return ' '.join(text.replace('_', ' ').split())


def _cents(amount) -> int:
    """Signed amount as integer cents"""
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return int((value * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value
