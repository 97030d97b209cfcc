# backend/schemas/contact.py
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from backend.schemas.common import RequestModel


class ContactRequest(RequestModel):
    # Length rules are enforced after sanitization, not here
    first_name: str
    last_name: str
    email: str
    message: str
    company: Optional[str] = None
    job_title: Optional[str] = None
    service_tier: Optional[Literal["tier1", "tier2", ""]] = None


class ContactResponse(BaseModel):
    success: bool = True
    message: str
    id: str


class ContactStatusUpdate(RequestModel):
    status: str = Field(min_length=1, max_length=20)
