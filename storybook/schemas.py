"""
Pydantic schemas for the storybook API.

Story and card bodies are multipart forms with dynamic field names, so only
the JSON endpoints and the response envelopes are modelled here.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=128)
    password: str = Field(..., min_length=1, max_length=256)


class LoginResponse(BaseModel):
    token: str


class SubscribeRequest(BaseModel):
    email: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class SubscribersResponse(BaseModel):
    emails: list[str]


class StoryResponse(BaseModel):
    message: str
    story: dict


class PartResponse(BaseModel):
    message: str
    part: dict
