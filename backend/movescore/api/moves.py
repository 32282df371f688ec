"""Move scoring API endpoints."""

import logging
import math

from fastapi import APIRouter, HTTPException, status

from movescore.config import get_settings
from movescore.engine import DecodeError, StateError, score_move
from movescore.schemas.move import MoveScoreRequest, MoveScoreResponse

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()


@router.post("/score", response_model=MoveScoreResponse)
async def score_recorded_move(request: MoveScoreRequest):
    """
    Score one recorded move against a classifier.

    Samples are sorted by timestamp and mapped onto the move's progress.
    Too few samples or a too short window return `valid=false` with a zero
    score rather than an error.
    """
    scale = 1.0 if request.accel_in_g else 1.0 / settings.gravity
    samples = [
        (s.timestamp_ms, s.accel[0] * scale, s.accel[1] * scale, s.accel[2] * scale)
        for s in request.samples
    ]

    try:
        result = score_move(
            request.classifier_bytes(),
            samples,
            request.game_move_duration,
            settings=settings,
        )
    except DecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid classifier: {e}"
        )
    except StateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    payload = result.to_dict()
    if math.isinf(payload["statistical_distance"]):
        payload["statistical_distance"] = None
    return MoveScoreResponse(**payload)
