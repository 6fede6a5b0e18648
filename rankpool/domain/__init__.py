"""
Domain package for the ranking pipeline.

Exports the record models shared by the store, the pipeline and the HTTP layer.
Keep this package focused on data definitions and validation concerns.
"""

from rankpool.domain.models import EnrichedRecord, Record

__all__ = [
    "EnrichedRecord",
    "Record",
]
