"""Response models for the informational endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class ModelCard(BaseModel):
    """One entry of GET /v1/models."""

    id: str
    object: Literal["model"] = "model"
    created: int
    owned_by: str = "hark"
    task: str


class ModelList(BaseModel):
    """Response for GET /v1/models (OpenAI list shape)."""

    object: Literal["list"] = "list"
    data: list[ModelCard]


class HealthResponse(BaseModel):
    status: Literal["ok", "not_ready"]
    version: str
    mode: str | None = None
