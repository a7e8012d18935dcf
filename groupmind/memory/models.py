"""
Record types for the tiered memory: raw messages, router decisions, hourly
notes, daily digests, knowledge entries and reminders.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import List, Optional


@dataclass(frozen=True)
class Message:
    """A raw chat message. Immutable once stored."""
    conversation_id: str
    sender: str
    body: str
    timestamp: datetime
    is_reply: bool = False
    has_media: bool = False
    addressed: bool = False  # bot mentioned, replied to, or private chat
    message_id: Optional[int] = None  # transport id, scoped by conversation
    conversation_name: Optional[str] = None
    id: Optional[int] = None  # store row id


@dataclass(frozen=True)
class RouterDecision:
    action: str  # "pass" | "ignore"
    confidence: float
    reason: str
    method: str  # "heuristic" | "oracle"
    cost: float = 0.0
    tokens_used: int = 0

    @property
    def passed(self):
        return self.action == "pass"


@dataclass
class HourlyNote:
    conversation_id: str
    hour_bucket: datetime  # start of the summarized hour, UTC
    summary: str
    decisions: List[str] = field(default_factory=list)
    action_items: List[str] = field(default_factory=list)
    message_count: int = 0
    participants: List[str] = field(default_factory=list)
    id: Optional[int] = None


@dataclass
class DailyDigest:
    conversation_id: str
    digest_date: date  # local calendar date
    summary: str
    projects: List[str] = field(default_factory=list)
    decisions: List[str] = field(default_factory=list)
    blockers: List[str] = field(default_factory=list)
    financial: dict = field(default_factory=lambda: {"payments": [], "budgets": []})
    message_count: int = 0
    participants: List[str] = field(default_factory=list)
    most_active: Optional[str] = None
    id: Optional[int] = None


@dataclass
class KnowledgeEntry:
    """
    Long-lived knowledge. `date` is the creation date and never changes;
    `content` only ever grows by appending.
    """
    id: int
    date: str
    topic: str
    content: str
    tags: List[str] = field(default_factory=list)


@dataclass
class ProcessingCursor:
    last_processed: Optional[datetime]
    last_run_at: Optional[datetime] = None


@dataclass
class Reminder:
    conversation_id: str
    person: str
    remind_date: date
    remind_time: time
    message: str
    created_by: str
    implicit: bool = False
    status: str = "pending"
    id: Optional[int] = None
