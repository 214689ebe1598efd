"""
Similarity Scoring

Pairwise similarity between two contacts, and the whole-population fallback
duplicate finder built on top of it. The finder compares every contact with
every other one, so it is only suitable for small record sets; the index
based categorizer is the primary duplicate finder.
"""

import logging
import math
from typing import Iterable, List, Optional

from ..logging_config import Timer, log_performance
from ..models import Contact, DedupeConfig, DuplicateGroup, MatchType, ScoreWeights, SimilarityBreakdown
from ..normalization import similar_text_percent

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class SimilarityScorer:
    """
    Scores contact pairs on phone, email and name.

    Phone and email are all-or-nothing (any shared normalized value scores
    100). Name uses the longest-common-substring percentage. The overall
    score is a weighted average over the non-zero components only.
    """

    def __init__(self, config: Optional[DedupeConfig] = None):
        self.config = config or DedupeConfig()

    @property
    def weights(self) -> ScoreWeights:
        return self.config.weights

    def score(self, a: Contact, b: Contact) -> SimilarityBreakdown:
        """Compare two contacts component by component."""
        phones_a = {p for p in a.normalized_phones if p}
        phones_b = {p for p in b.normalized_phones if p}
        emails_a = {e for e in a.normalized_emails if e}
        emails_b = {e for e in b.normalized_emails if e}

        phone = 100 if phones_a & phones_b else 0
        email = 100 if emails_a & emails_b else 0
        name = self.name_score(a.normalized_name, b.normalized_name)

        components = (
            (phone, self.weights.phone),
            (email, self.weights.email),
            (name, self.weights.name),
        )
        total_weight = sum(weight for score, weight in components if score > 0)
        if total_weight:
            weighted = sum(score * weight for score, weight in components if score > 0)
            overall = _round_half_up(weighted / total_weight)
        else:
            overall = 0

        return SimilarityBreakdown(phone=phone, email=email, name=name, overall=overall)

    @staticmethod
    def name_score(name_a: str, name_b: str) -> int:
        """Name similarity of two already normalized names."""
        if not name_a or not name_b:
            return 0
        if name_a == name_b:
            return 100
        return similar_text_percent(name_a, name_b)

    def clamp_threshold(self, threshold: Optional[int]) -> int:
        """Clamp a user supplied threshold into the configured range."""
        if threshold is None:
            threshold = self.config.fuzzy_threshold
        return max(self.config.threshold_min, min(self.config.threshold_max, int(threshold)))

    def find_duplicates(
        self,
        contacts: Iterable[Contact],
        threshold: Optional[int] = None,
    ) -> List[DuplicateGroup]:
        """Group contacts by pairwise comparison.

        Each not yet grouped contact seeds a group and pulls in every later
        ungrouped contact that shares a phone, shares an email, or reaches
        ``threshold`` overall. Matching is against the seed only, it is not
        transitive.

        Args:
            contacts: Snapshot of the record set
            threshold: Minimum overall score for a fuzzy match (default from
                config), clamped to the configured range

        Returns:
            Duplicate groups of type phone, email or fuzzy
        """
        threshold = self.clamp_threshold(threshold)
        records: List[Contact] = list({c.id: c for c in contacts}.values())

        with Timer() as timer:
            groups = self._pairwise(records, threshold)

        log_performance(
            __name__, "find_duplicates", timer.duration_ms,
            contact_count=len(records), group_count=len(groups), threshold=threshold,
        )
        return groups

    def _pairwise(self, records: List[Contact], threshold: int) -> List[DuplicateGroup]:
        groups: List[DuplicateGroup] = []
        processed = set()

        for i, seed in enumerate(records):
            if seed.id in processed:
                continue

            members = [seed.snapshot()]
            match_type: Optional[MatchType] = None
            lowest = 100

            for other in records[i + 1:]:
                if other.id in processed:
                    continue

                breakdown = self.score(seed, other)
                if breakdown.phone == 100:
                    kind = MatchType.PHONE
                elif breakdown.email == 100:
                    kind = MatchType.EMAIL
                elif breakdown.overall >= threshold:
                    kind = MatchType.FUZZY
                else:
                    continue

                members.append(other.snapshot())
                processed.add(other.id)
                lowest = min(lowest, breakdown.overall)
                # A phone match labels the whole group; otherwise the first kind sticks
                if match_type is None or kind == MatchType.PHONE:
                    match_type = kind

            processed.add(seed.id)

            if len(members) > 1:
                groups.append(DuplicateGroup(
                    contacts=members,
                    match_type=match_type,
                    matched_on=MatchType(match_type).value,
                    similarity=lowest,
                ))

        logger.debug(f"Pairwise comparison found {len(groups)} groups at threshold {threshold}")
        return groups
