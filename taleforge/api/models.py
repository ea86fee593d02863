from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SessionCreateRequest(BaseModel):
    # Omit to have the server pick an id.
    session_id: str | None = Field(default=None, min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_-]+$")


class CommandRequest(BaseModel):
    text: str = Field(..., max_length=500)


class CommandAccepted(BaseModel):
    session_id: str
    ticket: int


class LocationView(BaseModel):
    room_id: str
    title: str
    description: str | None = None
    exits: list[str] = Field(default_factory=list)
    items: list[str] = Field(default_factory=list)
    hostile: str | None = None


class HealthView(BaseModel):
    current: int
    max: int


class SessionView(BaseModel):
    session_id: str
    mode: str
    location: LocationView
    inventory: list[str]
    health: HealthView
    combat: dict[str, Any] | None = None
    seq: int


class SessionListResponse(BaseModel):
    session_ids: list[str]


class CheckpointResponse(BaseModel):
    session_id: str
    schema_version: int
    saved: bool


class EventView(BaseModel):
    type: str
    session_id: str
    seq: int
    ticket: int
    payload: dict[str, Any]
    ts: str


class EventListResponse(BaseModel):
    events: list[EventView]
