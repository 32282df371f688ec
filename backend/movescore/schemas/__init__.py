"""Pydantic schemas for API request/response models."""

from movescore.schemas.move import (
    AccelSample,
    ClassifierInspectRequest,
    ClassifierInspectResponse,
    MoveScoreRequest,
    MoveScoreResponse,
)

__all__ = [
    "AccelSample",
    "ClassifierInspectRequest",
    "ClassifierInspectResponse",
    "MoveScoreRequest",
    "MoveScoreResponse",
]
