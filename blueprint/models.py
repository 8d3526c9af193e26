from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .taxonomy import Category, Focus, Mood, Platform, SponsoredContent


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive timestamps from older imports are taken to be UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)


class Video(CamelModel):
    id: str = Field(..., alias="_id")
    platform: Platform
    title: str = ""
    user: str
    views: int = Field(default=0, ge=0)
    likes: Optional[int] = Field(default=None, ge=0)
    category: Category = Category.LIFESTYLE
    focus: Focus = Focus.TECH_GAMING
    mood: Mood = Mood.CALM
    sponsored_content: Optional[SponsoredContent] = None
    rating: float = Field(default=5, ge=1, le=10)
    url: str = ""
    insta_embed: str = ""
    tiktok_embed: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _timezone_aware(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def handle(self) -> str:
        return self.user if self.user.startswith("@") else f"@{self.user}"


class Filter(CamelModel):
    model_config = ConfigDict(frozen=True)

    type: str
    value: str


class Favorite(CamelModel):
    id: str
    video_id: str
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _timezone_aware(cls, value: datetime) -> datetime:
        return as_utc(value)
