"""Pydantic schemas for the authenticated caller."""

from pydantic import BaseModel, Field


class OwnerInfo(BaseModel):
    """Schema for the owning user resolved from the bearer token."""

    owner_id: str = Field(..., description="Owning user ID (token subject)")
    is_authenticated: bool = Field(..., description="Whether a verified token was presented")
    mode: str = Field(..., description="Authentication mode (jwt or local)")
