import logging
import math
from dataclasses import dataclass, field
from typing import Callable

from .exclusions import ExclusionPatterns
from .models import CandidateDetail, decade_label
from .profile import PreferenceProfile
from .utils import clamp
from .config import FACTOR_WEIGHTS, MAX_ACTORS_CONSIDERED

logger = logging.getLogger(__name__)

# Genre step function: (minimum profile weight, factor)
GENRE_STEPS = ((0.7, 1.0), (0.3, 0.7), (0.1, 0.3))
GENRE_FLOOR = 0.1

ERA_UNSEEN = 0.2
ERA_UNKNOWN_YEAR = 0.5
CLASSIC_YEAR = 1990
CLASSIC_MIN_RATING = 8.0
CLASSIC_ERA_SCORE = 0.8

QUALITY_UNKNOWN = 0.3

ACTOR_TALENT_FACTOR = 0.7

REASON_GENRE_MIN = 0.7
REASON_GENRE_LOVED = 0.6
REASON_ERA_MIN = 0.6
REASON_QUALITY_MIN = 0.7
REASON_TALENT_MIN = 0.5
MAX_REASONS = 2


@dataclass
class ScoreBreakdown:
    genre: float = 0.0
    era: float = 0.0
    quality: float = 0.0
    avoidance: float = 0.0
    talent: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in FACTOR_WEIGHTS}


@dataclass
class ScoreResult:
    score: float
    confidence: float
    reasoning: list[str] = field(default_factory=list)
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)


def genre_factor(detail: CandidateDetail, profile: PreferenceProfile, patterns: ExclusionPatterns) -> float:
    if not detail.genres:
        return GENRE_FLOOR

    total = 0.0
    for genre in detail.genres:
        weight = profile.genre_weight(genre)
        total += next((factor for floor, factor in GENRE_STEPS if weight >= floor), GENRE_FLOOR)
    return total / len(detail.genres)


def era_factor(detail: CandidateDetail, profile: PreferenceProfile, patterns: ExclusionPatterns) -> float:
    if detail.year is None:
        return ERA_UNKNOWN_YEAR

    era_weight = profile.era_weights.get(decade_label(detail.year)) or ERA_UNSEEN

    # Acclaimed classics are worth recommending whatever the era preference
    if detail.year < CLASSIC_YEAR and detail.rating is not None and detail.rating > CLASSIC_MIN_RATING:
        return max(era_weight, CLASSIC_ERA_SCORE)
    return era_weight


def quality_factor(detail: CandidateDetail, profile: PreferenceProfile, patterns: ExclusionPatterns) -> float:
    if detail.rating is None:
        return QUALITY_UNKNOWN

    threshold = profile.rating_threshold
    if detail.rating >= threshold + 1:
        return 1.0
    elif detail.rating >= threshold:
        return 0.8
    elif detail.rating >= threshold - 0.5:
        return 0.5
    return 0.1


def avoidance_factor(detail: CandidateDetail, profile: PreferenceProfile, patterns: ExclusionPatterns) -> float:
    score = 1.0

    for genre in detail.genres:
        rate = patterns.genre_rate(genre)
        if rate > 0.5:
            score -= 0.8
        elif rate > 0.2:
            score -= 0.5

    for director in detail.directors:
        if patterns.director_rate(director) > 0.3:
            score -= 0.6

    for actor in detail.actors[:MAX_ACTORS_CONSIDERED]:
        if patterns.actor_rate(actor) > 0.3:
            score -= 0.4

    return clamp(score)


def talent_factor(detail: CandidateDetail, profile: PreferenceProfile, patterns: ExclusionPatterns) -> float:
    score = 0.0
    for director in detail.directors:
        score = max(score, profile.director_weights.get(director, 0.0))
    for actor in detail.actors[:MAX_ACTORS_CONSIDERED]:
        score = max(score, profile.actor_weights.get(actor, 0.0) * ACTOR_TALENT_FACTOR)
    return min(score, 1.0)


FactorFunc = Callable[[CandidateDetail, PreferenceProfile, ExclusionPatterns], float]

DEFAULT_FACTORS: dict[str, FactorFunc] = {
    'genre': genre_factor,
    'era': era_factor,
    'quality': quality_factor,
    'avoidance': avoidance_factor,
    'talent': talent_factor,
}


def compute_confidence(detail: CandidateDetail, profile: PreferenceProfile) -> float:
    """Data completeness plus profile maturity; independent of the score."""
    confidence = (
        (0.3 if detail.genres else 0.0)
        + (0.3 if detail.rating is not None else 0.0)
        + (0.2 if detail.year is not None else 0.0)
        + min(profile.history_size / 20, 1.0) * 0.2
    )
    return clamp(confidence, 0.1, 1.0)


def build_reasoning(detail: CandidateDetail, profile: PreferenceProfile, breakdown: ScoreBreakdown) -> list[str]:
    reasons = []

    if breakdown.genre > REASON_GENRE_MIN:
        loved = [g for g in detail.genres if profile.genre_weight(g) > REASON_GENRE_LOVED]
        if loved:
            reasons.append(f"Matches your love for {' and '.join(loved[:2])}")

    if breakdown.era > REASON_ERA_MIN and detail.year is not None:
        reasons.append(f"From your preferred {decade_label(detail.year)} era")

    if breakdown.quality > REASON_QUALITY_MIN and detail.rating is not None:
        reasons.append(f"High rating ({detail.rating:.1f}) matches your standards")

    if breakdown.talent > REASON_TALENT_MIN:
        directors = [d for d in detail.directors if profile.director_weights.get(d, 0.0) > REASON_TALENT_MIN]
        actors = [
            a for a in detail.actors[:MAX_ACTORS_CONSIDERED]
            if profile.actor_weights.get(a, 0.0) > REASON_TALENT_MIN
        ]
        if directors:
            reasons.append(f"Directed by {directors[0]} (your favorite)")
        elif actors:
            reasons.append(f"Stars {actors[0]} (you love their work)")

    return reasons[:MAX_REASONS]


class ScoringEngine:
    """Weighted multi-factor scorer for fully detailed candidates."""

    def __init__(
        self,
        weights: dict[str, float] | None = None,
        factors: dict[str, FactorFunc] | None = None,
    ):
        self.weights = dict(weights or FACTOR_WEIGHTS)
        self.factors = dict(factors or DEFAULT_FACTORS)

        if set(self.weights) != set(self.factors):
            raise ValueError(f"Weights {sorted(self.weights)} do not match factors {sorted(self.factors)}")
        total = math.fsum(self.weights.values())
        if not math.isclose(total, 1.0):
            raise ValueError(f"Scoring weights must total 1.0, got {total}")

    def score(
        self,
        detail: CandidateDetail,
        profile: PreferenceProfile,
        patterns: ExclusionPatterns | None = None,
    ) -> ScoreResult:
        patterns = patterns or ExclusionPatterns()
        breakdown = ScoreBreakdown()

        weighted_sum = 0.0
        for name, factor in self.factors.items():
            value = factor(detail, profile, patterns)
            setattr(breakdown, name, value)
            weighted_sum += value * self.weights[name]

        result = ScoreResult(
            score=clamp(weighted_sum),
            confidence=compute_confidence(detail, profile),
            reasoning=build_reasoning(detail, profile, breakdown),
            breakdown=breakdown,
        )
        logger.debug(f"Scored {detail.item_id} ({detail.title}): {result.score:.3f} {breakdown.as_dict()}")
        return result
