"""
Assistant Application DTOs
===========================
"""

from pydantic import BaseModel, Field


class AskRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=2000, description="Question for QuixkyBot")


class AskResponse(BaseModel):
    query: str
    reply: str
    relevant: bool = Field(..., description="Whether the question was about ticket management")


class SpeakRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=2500)
