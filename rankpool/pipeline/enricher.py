"""
Profile enrichment of fetched ranking records.

Each record becomes a new `EnrichedRecord`:
- a known malformed user-id substring is replaced by its correction
  (one `str.replace` pass; the result is not scanned again),
- `level` is derived from the score through an ordered threshold table,
- `profile_status` is always "active".
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from rankpool.domain.models import EnrichedRecord, Record
from rankpool.errors import InvalidInput
from rankpool.pipeline.hooks import PipelineHooks
from rankpool.utils.logging import get_logger

log = get_logger(__name__)

STAGE = "enrich"

# Highest threshold first.
DEFAULT_LEVELS: Tuple[Tuple[int, str], ...] = (
    (2000, "master"),
    (1000, "expert"),
    (500, "intermediate"),
    (100, "beginner"),
)


class ProfileEnricher:
    def __init__(
        self,
        typo: str = "대이터독",
        correction: str = "데이터독",
        levels: Sequence[Tuple[int, str]] = DEFAULT_LEVELS,
        default_level: str = "novice",
        profile_status: str = "active",
        hooks: Optional[PipelineHooks] = None,
    ) -> None:
        self.typo = typo
        self.correction = correction
        self.levels = tuple(sorted(levels, key=lambda item: item[0], reverse=True))
        self.default_level = default_level
        self.profile_status = profile_status
        self.hooks = hooks or PipelineHooks()

    def level_for(self, score: Optional[int]) -> str:
        if score is None:
            return self.default_level
        for threshold, level in self.levels:
            if score >= threshold:
                return level
        return self.default_level

    def correct_user_id(self, user_id: str) -> str:
        if self.typo and self.typo in user_id:
            corrected = user_id.replace(self.typo, self.correction)
            log.info(
                "[USER ID CORRECTED]",
                extra={"user_id": user_id, "corrected_user_id": corrected},
            )
            return corrected
        return user_id

    def enrich_one(self, record: Record) -> EnrichedRecord:
        return EnrichedRecord(
            user_id=self.correct_user_id(record.user_id),
            score=record.score,
            timestamp=record.timestamp,
            source=record.source,
            profile_status=self.profile_status,
            level=self.level_for(record.score),
        )

    def enrich(self, records: Optional[Iterable[Record]]) -> List[EnrichedRecord]:
        """
        Enrich every record, preserving order and count.

        Raises
        ------
        InvalidInput
            If `records` is None. An empty sequence is valid.
        """
        if records is None:
            raise InvalidInput("records must not be None", stage=STAGE)
        records = list(records)

        with self.hooks.enrichment(len(records)) as tags:
            enriched = [self.enrich_one(record) for record in records]
            tags["corrected"] = sum(
                1 for before, after in zip(records, enriched) if before.user_id != after.user_id
            )
        return enriched


__all__ = ["DEFAULT_LEVELS", "ProfileEnricher"]
