import logging
import yaml
from pydantic import ValidationError
from typing import Dict, Any, Iterable

from services.assessment_engine.models import (
    AssessmentCatalog,
    CatalogValidationError,
)

logger = logging.getLogger(__name__)

TOTAL_WEIGHT = 100


def _check_unique(ids: Iterable[str], what: str) -> None:
    seen = set()
    for item_id in ids:
        if item_id in seen:
            raise CatalogValidationError(f"Duplicate {what} ID found: {item_id}")
        seen.add(item_id)


def _check_languages(text: Dict[str, str], languages: Iterable[str], where: str) -> None:
    missing = [lang for lang in languages if not text.get(lang)]
    if missing:
        raise CatalogValidationError(f"Missing translation(s) {missing} for {where}")


def load_catalog_data(data: Dict[str, Any]) -> AssessmentCatalog:
    """
    Validates the raw dictionary against the AssessmentCatalog model and
    enforces the invariants pydantic cannot express: weights summing to 100,
    unique ids, complete translations and a well-ordered tier table.
    """
    try:
        catalog = AssessmentCatalog.model_validate(data)
    except ValidationError as e:
        raise CatalogValidationError(f"Catalog does not match schema: {e}") from e

    languages = catalog.languages
    if catalog.default_language not in languages:
        raise CatalogValidationError(
            f"Default language '{catalog.default_language}' is not one of {languages}"
        )

    if catalog.scale.min >= catalog.scale.max:
        raise CatalogValidationError(
            f"Scale minimum ({catalog.scale.min}) must be below its maximum ({catalog.scale.max})"
        )

    total_weight = sum(category.weight for category in catalog.categories)
    if total_weight != TOTAL_WEIGHT:
        raise CatalogValidationError(f"Category weights sum to {total_weight}, expected {TOTAL_WEIGHT}")

    _check_unique((c.id for c in catalog.categories), "category")
    # Question ids are global so that a question can be addressed without its category
    _check_unique((q.id for c in catalog.categories for q in c.questions), "question")
    _check_unique((t.id for t in catalog.tiers), "tier")

    for category in catalog.categories:
        _check_languages(category.name, languages, f"category '{category.id}' name")
        _check_languages(category.advice, languages, f"category '{category.id}' advice")
        for question in category.questions:
            _check_languages(question.text, languages, f"question '{question.id}'")

    previous = None
    for tier in catalog.tiers:
        _check_languages(tier.label, languages, f"tier '{tier.id}' label")
        _check_languages(tier.description, languages, f"tier '{tier.id}' description")
        if previous is not None and tier.min_score >= previous:
            raise CatalogValidationError(
                f"Tiers must be ordered by descending min_score; '{tier.id}' ({tier.min_score}) is out of order"
            )
        previous = tier.min_score
    if catalog.tiers[-1].min_score > 0:
        raise CatalogValidationError(
            f"Lowest tier '{catalog.tiers[-1].id}' must start at 0, found {catalog.tiers[-1].min_score}"
        )

    missing_text = [lang for lang in languages if lang not in catalog.report_text]
    if missing_text:
        raise CatalogValidationError(f"Missing report text for language(s): {missing_text}")

    logger.info(
        f"Loaded assessment catalog v{catalog.version}: "
        f"{len(catalog.categories)} categories, "
        f"{sum(c.question_count for c in catalog.categories)} questions"
    )
    return catalog


def load_catalog_from_file(file_path: str) -> AssessmentCatalog:
    """
    Loads the questionnaire catalog from a YAML file, validates it,
    and returns an AssessmentCatalog object.
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise CatalogValidationError(f"File not found: {file_path}")
    except yaml.YAMLError as e:
        raise CatalogValidationError(f"Error parsing YAML file {file_path}: {e}")

    if data is None:
        raise CatalogValidationError(f"YAML file is empty or invalid: {file_path}")

    return load_catalog_data(data)
