import copy

import pytest

from services.assessment_engine.engine import DEFAULT_CATALOG_PATH, AssessmentEngine
from services.assessment_engine.loader import load_catalog_from_file
from services.assessment_engine.models import ReportText

CATALOG_PATH = DEFAULT_CATALOG_PATH

CATEGORY_IDS = ["strategic", "operational", "customer", "financial", "leadership", "external"]


def full_scores(value: int) -> dict:
    """Answer set giving every question of the shipped catalog the same value."""
    return {category_id: [value] * 4 for category_id in CATEGORY_IDS}


def report_text(language: str) -> dict:
    """A complete report text block; every value is tagged with its key and language."""
    text = {field: f"{field} [{language}]" for field in ReportText.model_fields}
    text["email_subject"] = "Assessment {company} - Score: {score}"
    return text


@pytest.fixture(scope="session")
def catalog():
    return load_catalog_from_file(CATALOG_PATH)


@pytest.fixture(scope="session")
def engine(catalog):
    return AssessmentEngine(catalog=catalog)


@pytest.fixture
def minimal_catalog_data():
    """Two categories of two questions each, two tiers, one language."""
    data = {
        "version": "0.1.0",
        "released_at": "2024-01-01",
        "default_language": "en",
        "languages": ["en"],
        "scale": {"min": 0, "max": 4},
        "improvement": {"threshold": 3, "max_items": 3},
        "categories": [
            {
                "id": "alpha",
                "weight": 60,
                "name": {"en": "Alpha"},
                "advice": {"en": "Improve alpha."},
                "questions": [
                    {"id": "a1", "text": {"en": "Alpha one?"}},
                    {"id": "a2", "text": {"en": "Alpha two?"}},
                ],
            },
            {
                "id": "beta",
                "weight": 40,
                "name": {"en": "Beta"},
                "advice": {"en": "Improve beta."},
                "questions": [
                    {"id": "b1", "text": {"en": "Beta one?"}},
                    {"id": "b2", "text": {"en": "Beta two?"}},
                ],
            },
        ],
        "tiers": [
            {"id": "high", "min_score": 50, "label": {"en": "High"}, "description": {"en": "Doing well"}},
            {"id": "low", "min_score": 0, "label": {"en": "Low"}, "description": {"en": "Needs work"}},
        ],
        "report_text": {"en": report_text("en")},
    }
    return copy.deepcopy(data)


@pytest.fixture
def make_scores():
    """Builds shipped-catalog answer sets: ``make_scores(0, strategic=[4, 4, 4, 4])``."""
    def _make(default: int = 0, **overrides):
        scores = full_scores(default)
        scores.update(overrides)
        return scores
    return _make
