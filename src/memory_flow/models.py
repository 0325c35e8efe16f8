"""Data classes for notes and the study log."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


@dataclass
class MemoryItem:
    id: Any
    review_stage: int
    next_review_at: datetime
    created_at: datetime
    content: str = ""
    title: Optional[str] = None
    body: Optional[str] = None
    image_path: Optional[str] = None
    mask: Optional[list] = None  # opaque geometry, stored as JSON
    deleted: bool = False


@dataclass(frozen=True)
class StudyLogEntry:
    item_id: Any
    timestamp: datetime
