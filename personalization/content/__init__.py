"""
Content access and candidate generation.

Stores:
- InMemoryContentStore: JSON catalog in memory
- SqlContentStore: SQLAlchemy tables content_items / learner_mastery
- HttpContentStore: remote content service over httpx
"""

from personalization.content.candidates import CandidateConfig, CandidateGenerator
from personalization.content.http_store import HttpContentStore
from personalization.content.sql_store import SqlContentStore
from personalization.content.store import (
    ContentStore,
    InMemoryContentStore,
    supports_requirement,
    violated_constraint,
)

__all__ = [
    "CandidateConfig",
    "CandidateGenerator",
    "ContentStore",
    "HttpContentStore",
    "InMemoryContentStore",
    "SqlContentStore",
    "supports_requirement",
    "violated_constraint",
]
