"""Pydantic schemas for blob API endpoints.

This module defines request and response models for the storage driver
REST API, including resumable stream writes and listings.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class WriteOutcomeOut(BaseModel):
    """Result of a resumable stream write."""

    model_config = ConfigDict(from_attributes=True)

    path: str
    bytes_committed: int
    parts_uploaded: int
    completed: bool


class SizeOut(BaseModel):
    """Bytes committed at a path."""

    path: str
    size: int


class ListingOut(BaseModel):
    """Direct children of a path, files first."""

    path: str
    entries: list[str] = Field(default_factory=list)


class MoveRequest(BaseModel):
    """Request body for moving an object."""

    source: str = Field(min_length=1)
    destination: str = Field(min_length=1)
