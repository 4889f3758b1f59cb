import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .collector import ScoreCollector, ScoreInput
from .loader import load_catalog_from_file
from .models import AssessmentCatalog, AssessmentResult
from .scoring import score_assessment

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = str(Path(__file__).resolve().parents[2] / "assets" / "assessment_catalog.yml")


class AssessmentEngine:
    """
    Loads the questionnaire catalog and scores submitted answer sets against it.
    """
    def __init__(self, config_path: str = DEFAULT_CATALOG_PATH, catalog: Optional[AssessmentCatalog] = None):
        """
        Args:
            config_path: Path to the YAML catalog. Ignored when ``catalog`` is given.
            catalog: An already loaded catalog (mainly for tests).
        """
        if catalog is not None:
            self.catalog = catalog
            self.config_path = None
        else:
            self.config_path = Path(config_path)
            self.catalog = load_catalog_from_file(str(self.config_path))

    @property
    def version(self) -> str:
        return self.catalog.version

    def resolve_language(self, language: Optional[str]) -> str:
        """Returns ``language`` when the catalog carries it, otherwise the default language."""
        if language and language in self.catalog.languages:
            return language
        return self.catalog.default_language

    def get_questions(self, language: Optional[str] = None) -> Dict[str, Any]:
        """
        Returns the localized catalog for presentation: categories with their
        weights and ordered questions, plus the answer scale.
        """
        lang = self.resolve_language(language)
        categories: List[Dict[str, Any]] = [
            {
                "id": category.id,
                "name": category.name[lang],
                "weight": category.weight,
                "questions": [{"id": q.id, "text": q.text[lang]} for q in category.questions],
            }
            for category in self.catalog.categories
        ]
        return {
            "version": self.catalog.version,
            "language": lang,
            "scale": self.catalog.scale.model_dump(),
            "score_legend": self.catalog.text_for(lang).score_range,
            "categories": categories,
        }

    def new_collector(self) -> ScoreCollector:
        return ScoreCollector(self.catalog)

    def calculate(self, scores: Mapping[str, ScoreInput]) -> Tuple[AssessmentResult, Dict[str, bool]]:
        """
        Scores a submitted answer set.

        Args:
            scores: category id -> ordered answers (or index/id keyed mapping).

        Returns:
            The assessment result and the per-category completeness map.

        Raises:
            InvalidSubmissionError: unknown ids or out-of-range scores.
        """
        collector = ScoreCollector.from_answer_set(self.catalog, scores)
        completeness = collector.completeness()
        if not all(completeness.values()):
            # Gaps are scored at the scale minimum rather than rejected
            logger.info(f"Scoring incomplete assessment, unanswered: {collector.missing_questions()}")
        result = score_assessment(self.catalog, collector.answer_set())
        logger.info(
            f"Assessment scored: total={result.total_score:.2f} tier={result.tier.id} "
            f"improvements={[item.category_id for item in result.improvements]}"
        )
        return result, completeness
