"""Move scoring schemas."""

import base64
import binascii
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class AccelSample(BaseModel):
    """One accelerometer reading."""
    timestamp_ms: float
    accel: List[float] = Field(..., min_length=3, max_length=3)


class ClassifierPayload(BaseModel):
    """Base64-encoded classifier file."""
    classifier: str

    @field_validator("classifier")
    @classmethod
    def must_be_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("classifier must be base64-encoded")
        return value

    def classifier_bytes(self) -> bytes:
        return base64.b64decode(self.classifier)


class MoveScoreRequest(ClassifierPayload):
    """Schema for scoring one recorded move."""
    game_move_duration: float = Field(..., description="Move duration in the choreography, seconds")
    samples: List[AccelSample]
    accel_in_g: bool = True  # False: m/s², divided by gravity


class MoveScoreResponse(BaseModel):
    """Schema for a move score."""
    valid: bool
    ratio_score: float
    percentage_score: float
    statistical_distance: Optional[float] = None  # None when infinite
    energy_amount: float
    energy_factor: float
    direction_tendency: float
    shake_validation_time: float
    parts_count: int
    samples_used: int
    reason: Optional[str] = None


class ClassifierInspectRequest(ClassifierPayload):
    pass


class ClassifierInspectResponse(BaseModel):
    """Decoded classifier header and payload sizes."""
    name: str
    song_name: str
    measure_set_name: str
    format_version: int
    big_endian: bool
    duration: float
    stat_dist_low_threshold: float
    stat_dist_high_threshold: float
    auto_correlation_threshold: float
    direction_impact_factor: float
    measures: List[int]
    customization_flags: int
    scoring_algorithm: str
    parts_count: int
    means_count: int
    inverted_covariances_count: int
    energy_means_count: int
