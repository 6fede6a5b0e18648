"""
Domain models for the ranking pipeline.

`Record` is one row of the ranked-score read; `EnrichedRecord` is the value the
enrichment stage derives from it. Both are frozen: enrichment always builds a
new value. Field names are snake_case in Python and camelCase on the wire.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Record(BaseModel):
    """
    Best score and latest timestamp of one user, as returned by the score store.
    """

    user_id: str = Field(..., alias="userId", description="User identifier.")
    score: Optional[int] = Field(None, description="Highest score of the user.")
    timestamp: int = Field(..., description="Latest score timestamp, epoch milliseconds.")
    source: str = Field("postgresql", description="Store the record was read from.")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class EnrichedRecord(Record):
    """
    Record annotated with profile information.
    """

    profile_status: str = Field(..., alias="profileStatus")
    level: str = Field(..., description="Level derived from the score.")


__all__ = ["Record", "EnrichedRecord"]
