"""
Statistical distance between performed measures and a classifier.

Measure results are matched to classifier means by position: the i-th
scoring measure result uses means[i]. Directional measures keep their slot
but are left to the direction analysis.
"""

import logging
import math
from typing import Sequence

import numpy as np

from movescore.engine.classifier_codec import UNSET, ClassifierData, ScoringAlgorithm
from movescore.engine.measure_extractor import MeasureResult

logger = logging.getLogger(__name__)


def naive_bayes_distance(results: Sequence[MeasureResult], classifier: ClassifierData) -> float:
    """Diagonal distance: sqrt(Σ (x - mean)² * invCov / used)."""
    means = classifier.means
    inverted_covariances = classifier.inverted_covariances
    sqr_distance = 0.0
    used_count = 0

    for i, result in enumerate(results):
        if result.is_directional:
            continue
        if i >= len(means) or i >= len(inverted_covariances):
            logger.warning(
                f"Classifier '{classifier.name}' has {len(means)} means for "
                f"{len(results)} measure results; distance set to infinity"
            )
            return math.inf
        sqr_distance += (result.value - means[i]) ** 2 * inverted_covariances[i]
        used_count += 1

    return _normalize(sqr_distance, used_count)


def mahalanobis_distance(results: Sequence[MeasureResult], classifier: ClassifierData) -> float:
    """
    Full covariance distance.

    The inverted covariance matrix is stored as its packed upper triangle,
    row by row. Directional slots contribute a zero deviation.
    """
    means = classifier.means
    n = len(results)
    if n > len(means):
        logger.warning(
            f"Classifier '{classifier.name}' has {len(means)} means for "
            f"{n} measure results; distance set to infinity"
        )
        return math.inf

    deviations = np.zeros(n, dtype=np.float64)
    used_count = 0
    for i, result in enumerate(results):
        if not result.is_directional:
            deviations[i] = result.value - means[i]
            used_count += 1

    rows, cols = np.triu_indices(n)
    if len(rows) > len(classifier.inverted_covariances):
        logger.warning(
            f"Classifier '{classifier.name}' has {len(classifier.inverted_covariances)} "
            f"inverted covariances, {len(rows)} needed; distance set to infinity"
        )
        return math.inf

    packed = np.asarray(classifier.inverted_covariances[:len(rows)], dtype=np.float64)
    weights = np.where(rows == cols, 1.0, 2.0)
    sqr_distance = float(np.sum(deviations[rows] * deviations[cols] * packed * weights))

    return _normalize(sqr_distance, used_count)


def _normalize(sqr_distance: float, used_count: int) -> float:
    if used_count == 0:
        return math.inf
    return math.sqrt(max(0.0, sqr_distance) / used_count)


def statistical_distance(results: Sequence[MeasureResult], classifier: ClassifierData) -> float:
    if classifier.algorithm is ScoringAlgorithm.NAIVE_BAYES:
        distance = naive_bayes_distance(results, classifier)
    else:
        distance = mahalanobis_distance(results, classifier)
    logger.debug(f"Statistical distance ({classifier.algorithm.value}) for '{classifier.name}': {distance:.4f}")
    return distance


def ratio_score(distance: float, low_threshold: float, high_threshold: float) -> float:
    """
    Map a distance to [0, 1]: 1 at or below the low threshold, 0 at or above
    the high one, linear in between. Unset or equal thresholds give 0.
    """
    if low_threshold == UNSET or high_threshold == UNSET or low_threshold == high_threshold:
        return 0.0
    score = (distance - high_threshold) / (low_threshold - high_threshold)
    return min(max(score, 0.0), 1.0)
