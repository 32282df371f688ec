"""Classifier inspection API endpoints."""

from fastapi import APIRouter, HTTPException, status

from movescore.engine import DecodeError, decode, read_header
from movescore.engine.measure_extractor import compute_parts_count
from movescore.schemas.move import ClassifierInspectRequest, ClassifierInspectResponse

router = APIRouter()


@router.post("/inspect", response_model=ClassifierInspectResponse)
async def inspect_classifier(request: ClassifierInspectRequest):
    """Decode a classifier file and describe its header."""
    data = request.classifier_bytes()
    try:
        header = read_header(data)
        classifier = decode(data)
    except DecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid classifier: {e}"
        )

    return ClassifierInspectResponse(
        name=classifier.name,
        song_name=classifier.song_name,
        measure_set_name=classifier.measure_set_name,
        format_version=classifier.format_version,
        big_endian=header.big_endian,
        duration=classifier.duration,
        stat_dist_low_threshold=classifier.stat_dist_low_threshold,
        stat_dist_high_threshold=classifier.stat_dist_high_threshold,
        auto_correlation_threshold=classifier.auto_correlation_threshold,
        direction_impact_factor=classifier.direction_impact_factor,
        measures=list(classifier.measures_set),
        customization_flags=int(classifier.customization_flags),
        scoring_algorithm=classifier.algorithm.value,
        parts_count=compute_parts_count(classifier.format_version, classifier.duration),
        means_count=len(classifier.means),
        inverted_covariances_count=len(classifier.inverted_covariances),
        energy_means_count=len(classifier.energy_means),
    )
