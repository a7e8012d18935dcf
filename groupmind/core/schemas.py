"""Schemas the LLM output must satisfy before anything acts on it."""

import datetime as dt
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_TEXT = 1000
MAX_ITEM = 300


def _clip(value, limit):
    value = value.strip()
    return value if len(value) <= limit else value[:limit - 1].rstrip() + "…"


def _as_list(value):
    if value is None:
        return []
    if isinstance(value, str):
        return [t for t in (part.strip() for part in value.split(",")) if t]
    return value


class RouterVerdict(BaseModel):
    action: Literal["pass", "ignore"]
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    reason: str = "oracle classification"

    @field_validator("action", mode="before")
    @classmethod
    def _lower(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class ReminderPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    person: str = Field(min_length=1)
    remind_date: dt.date = Field(alias="date")
    remind_time: dt.time = Field(alias="time")
    message: str = Field(min_length=1)


class HourlySummary(BaseModel):
    text: str = Field(min_length=1)
    decisions: List[str] = Field(default_factory=list)
    actions: List[str] = Field(default_factory=list)

    @field_validator("text")
    @classmethod
    def _bound_text(cls, value):
        return _clip(value, MAX_TEXT)

    @field_validator("decisions", "actions")
    @classmethod
    def _bound_items(cls, value):
        return [_clip(item, MAX_ITEM) for item in value if item.strip()][:5]


class Financial(BaseModel):
    payments: List[Dict[str, Any]] = Field(default_factory=list)
    budgets: List[Dict[str, Any]] = Field(default_factory=list)


class DailySummary(BaseModel):
    summary: str = Field(min_length=1)
    projects: List[str] = Field(default_factory=list)
    decisions: List[str] = Field(default_factory=list)
    blockers: List[str] = Field(default_factory=list)
    financial: Financial = Field(default_factory=Financial)

    @field_validator("summary")
    @classmethod
    def _bound_summary(cls, value):
        return _clip(value, MAX_TEXT * 2)

    @field_validator("projects", "decisions", "blockers")
    @classmethod
    def _bound_items(cls, value):
        return [_clip(item, MAX_ITEM) for item in value if item.strip()][:10]


class CompilationPlan(BaseModel):
    """Top level of the knowledge compiler reply. Actions are checked one by one."""
    summary: str = ""
    actions: List[Dict[str, Any]] = Field(default_factory=list)


class NewAction(BaseModel):
    type: Literal["NEW"]
    date: str
    topic: str = Field(min_length=1)
    content: str = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)

    @field_validator("date")
    @classmethod
    def _iso_date(cls, value):
        dt.date.fromisoformat(value)
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value):
        return _as_list(value)


class MergeAction(BaseModel):
    type: Literal["MERGE"]
    kb_id: int
    additional_content: str = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value):
        return _as_list(value)
