"""
Assessment Scoring

Pure functions turning an answer set into category results, a weighted total,
a tier and the list of categories that need attention. Nothing here performs
I/O; identical input always yields identical output.
"""
import math
from typing import Dict, List, Optional, Sequence

from .models import (
    AssessmentCatalog,
    AssessmentResult,
    CategoryDefinition,
    CategoryResult,
    ImprovementItem,
    ScaleDefinition,
    TierDefinition,
)

AnswerSet = Dict[str, List[int]]


def fill_answers(answers: Optional[Sequence[Optional[int]]], question_count: int, scale: ScaleDefinition) -> List[int]:
    """Pads (or truncates) an answer list to the question count, using the scale minimum for gaps."""
    values = list(answers or [])[:question_count]
    filled = [scale.min if value is None else int(value) for value in values]
    filled.extend([scale.min] * (question_count - len(filled)))
    return filled


def compute_category_result(
    category: CategoryDefinition,
    answers: Optional[Sequence[Optional[int]]],
    scale: ScaleDefinition = ScaleDefinition(),
) -> CategoryResult:
    count = category.question_count
    filled = fill_answers(answers, count, scale)
    raw = sum(filled)
    # Normalised by both bounds; on a 0-based scale this is raw / max_possible.
    span = count * (scale.max - scale.min)
    percentage = (raw - count * scale.min) / span * 100
    weighted_score = percentage * category.weight / 100
    return CategoryResult(
        category_id=category.id,
        weight=category.weight,
        answers=filled,
        raw=raw,
        max_possible=count * scale.max,
        percentage=percentage,
        weighted_score=weighted_score,
        average=raw / count,
    )


def compute_category_results(catalog: AssessmentCatalog, answer_set: AnswerSet) -> List[CategoryResult]:
    return [
        compute_category_result(category, answer_set.get(category.id), catalog.scale)
        for category in catalog.categories
    ]


def compute_total_score(
    categories: Sequence[CategoryDefinition],
    answer_set: AnswerSet,
    scale: ScaleDefinition = ScaleDefinition(),
) -> float:
    """Sum of the weighted category scores, in [0, 100] for weights summing to 100."""
    return sum(
        compute_category_result(category, answer_set.get(category.id), scale).weighted_score
        for category in categories
    )


def classify(total_score: float, tiers: Sequence[TierDefinition]) -> TierDefinition:
    """
    Maps a total score to its tier. ``tiers`` must be ordered by descending
    ``min_score``; each bound is inclusive, so a score sitting exactly on a
    boundary belongs to the higher tier.
    """
    for tier in tiers:
        if total_score >= tier.min_score:
            return tier
    return tiers[-1]


def select_improvement_categories(
    results: Sequence[CategoryResult],
    catalog: AssessmentCatalog,
) -> List[ImprovementItem]:
    """
    Returns the lowest scoring categories whose average is below the
    improvement threshold, weakest first, capped at ``max_items``.
    """
    rules = catalog.improvement
    below = [result for result in results if result.average < rules.threshold]
    # sorted() is stable: equal averages keep catalog order
    lowest = sorted(below, key=lambda result: result.average)[: rules.max_items]
    items = []
    for result in lowest:
        category = catalog.get_category(result.category_id)
        items.append(
            ImprovementItem(
                category_id=result.category_id,
                average=result.average,
                advice=category.advice if category else {},
            )
        )
    return items


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_assessment(catalog: AssessmentCatalog, answer_set: AnswerSet) -> AssessmentResult:
    results = compute_category_results(catalog, answer_set)
    total = sum(result.weighted_score for result in results)
    return AssessmentResult(
        catalog_version=catalog.version,
        total_score=total,
        rounded_total=round_half_up(total),
        tier=classify(total, catalog.tiers),
        categories=results,
        improvements=select_improvement_categories(results, catalog),
    )
