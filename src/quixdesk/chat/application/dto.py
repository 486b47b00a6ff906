"""
Chat Application DTOs
======================

Request and response models for the ticket chat API.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from quixdesk.accounts.application.dto import UserResponse


# ========== Request DTOs ==========

class MessageCreateRequest(BaseModel):
    """A chat message; text, an uploaded image URL, or both."""
    content: Optional[str] = Field(None, max_length=5000, description="Message text")
    image_url: Optional[str] = Field(None, max_length=1024, description="URL from the image upload endpoint")

    @field_validator("content", "image_url")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class ReactionRequest(BaseModel):
    reaction: Optional[str] = Field(None, description="One of 👍 😂 😮 😢 ❤️, or null to clear")


class TypingRequest(BaseModel):
    is_typing: bool = True


# ========== Response DTOs ==========

class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    sender_id: str
    content: Optional[str] = None
    image_url: Optional[str] = None
    reaction: Optional[str] = None
    created_at: datetime
    read_at: Optional[datetime] = None

    @field_validator("id", "ticket_id", "sender_id", mode="before")
    @classmethod
    def stringify_ids(cls, v) -> str:
        return str(v)


class MessageListResponse(BaseModel):
    messages: List[MessageResponse]
    total: int


class ReadReceiptResponse(BaseModel):
    ticket_id: str
    count: int = Field(..., description="Messages newly marked as read")


class ImageUploadResponse(BaseModel):
    url: str


class CounterpartResponse(BaseModel):
    """The other side of the conversation."""
    user: Optional[UserResponse] = None
    online: bool = False
