"""
Pydantic schemas for the prayer wall API.

Fields are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from prayerwall.db import ChallengeChanges, ChallengeRecord, IntentionRecord, PrayerType

# Counters and targets are stored in 32-bit integer columns.
MAX_INT = 2_147_483_647


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateIntentionRequest(ApiModel):
    content: str = Field(..., min_length=1, max_length=4000)
    name: Optional[str] = Field(default=None, max_length=200)
    prayer_type: Optional[str] = Field(default=None, max_length=100)


class PrayRequest(ApiModel):
    type: PrayerType


class IntentionResponse(ApiModel):
    id: int
    content: str
    name: Optional[str] = None
    prayer_type: Optional[str] = None
    hail_mary_count: int
    our_father_count: int
    rosary_count: int
    is_printed: bool
    created_at: datetime

    @classmethod
    def from_record(cls, record: IntentionRecord) -> "IntentionResponse":
        return cls(
            id=record.id,
            content=record.content,
            name=record.name,
            prayer_type=record.prayer_type,
            hail_mary_count=record.hail_mary_count,
            our_father_count=record.our_father_count,
            rosary_count=record.rosary_count,
            is_printed=record.is_printed,
            created_at=record.created_at,
        )


class CreateChallengeRequest(ApiModel):
    title: str = Field(..., min_length=1, max_length=200)
    prayer_type: str = Field(..., min_length=1, max_length=100)
    total_target: int = Field(..., gt=0, le=MAX_INT)
    is_active: bool = True


class UpdateChallengeRequest(ApiModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    prayer_type: Optional[str] = Field(default=None, min_length=1, max_length=100)
    total_target: Optional[int] = Field(default=None, gt=0, le=MAX_INT)
    is_active: Optional[bool] = None

    @field_validator("title", "prayer_type", "total_target", "is_active")
    @classmethod
    def _reject_explicit_null(cls, value):
        # Only runs for fields present in the body; omitted fields keep their default.
        if value is None:
            raise ValueError("may not be null")
        return value

    def to_changes(self) -> ChallengeChanges:
        return ChallengeChanges(
            title=self.title,
            prayer_type=self.prayer_type,
            total_target=self.total_target,
            is_active=self.is_active,
        )


class IncrementChallengeRequest(ApiModel):
    amount: int = Field(default=1, gt=0, le=MAX_INT)


class ChallengeResponse(ApiModel):
    id: int
    title: str
    prayer_type: str
    total_target: int
    current_count: int
    is_active: bool
    created_at: datetime

    @classmethod
    def from_record(cls, record: ChallengeRecord) -> "ChallengeResponse":
        return cls(
            id=record.id,
            title=record.title,
            prayer_type=record.prayer_type,
            total_target=record.total_target,
            current_count=record.current_count,
            is_active=record.is_active,
            created_at=record.created_at,
        )


class ErrorResponse(BaseModel):
    message: str
    field: Optional[str] = None


class HealthResponse(BaseModel):
    status: Literal["ok"]
