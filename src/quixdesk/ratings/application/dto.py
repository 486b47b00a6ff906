"""
Ratings Application DTOs
=========================
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class RatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5, description="1 (poor) to 5 (excellent)")
    experience: Optional[str] = Field(None, max_length=2000, description="Free-text feedback")

    @field_validator("experience")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class FeedbackResponse(BaseModel):
    id: str
    ticket_id: str
    ticket_title: Optional[str] = None
    customer_id: str
    customer_name: Optional[str] = None
    employee_id: str
    employee_name: Optional[str] = None
    rating: int
    experience: Optional[str] = None
    created_at: datetime


class FeedbackListResponse(BaseModel):
    feedback: List[FeedbackResponse]
    total: int
    average_rating: str = Field(..., description="Mean rating to one decimal, '0.0' when unrated")


class PendingRatingResponse(BaseModel):
    """A closed ticket still waiting for the customer's rating."""
    ticket_id: str
    title: str
    employee_id: str
    employee_name: Optional[str] = None
    closed_at: Optional[datetime] = None
