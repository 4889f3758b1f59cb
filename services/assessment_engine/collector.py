import logging
from typing import Dict, List, Mapping, Optional, Sequence, Union

from .models import AssessmentCatalog, CategoryDefinition, InvalidSubmissionError

logger = logging.getLogger(__name__)

ScoreInput = Union[Sequence[Optional[int]], Mapping[int, Optional[int]]]


class ScoreCollector:
    """
    Accumulates one integer answer per question while the questionnaire is
    being filled in. Any recorded value counts as answered, the scale
    minimum included.
    """

    def __init__(self, catalog: AssessmentCatalog):
        self.catalog = catalog
        self._answers: Dict[str, Dict[int, int]] = {}

    @classmethod
    def from_answer_set(cls, catalog: AssessmentCatalog, scores: Mapping[str, ScoreInput]) -> "ScoreCollector":
        collector = cls(catalog)
        for category_id, category_scores in scores.items():
            collector.record_many(category_id, category_scores)
        return collector

    def _category(self, category_id: str) -> CategoryDefinition:
        category = self.catalog.get_category(category_id)
        if category is None:
            raise InvalidSubmissionError(f"Unknown category '{category_id}'")
        return category

    def _question_index(self, category: CategoryDefinition, question: Union[str, int]) -> int:
        if isinstance(question, int):
            if 0 <= question < category.question_count:
                return question
            raise InvalidSubmissionError(
                f"Question index {question} out of range for category '{category.id}' "
                f"({category.question_count} questions)"
            )
        for index, definition in enumerate(category.questions):
            if definition.id == question:
                return index
        raise InvalidSubmissionError(f"Unknown question '{question}' in category '{category.id}'")

    def _mapping_key(self, category: CategoryDefinition, key: Union[str, int]) -> Union[str, int]:
        # "2" addresses the third question; anything else is a question id
        if isinstance(key, str) and key.isdecimal():
            try:
                return int(key)
            except ValueError as e:
                raise InvalidSubmissionError(f"Invalid question key '{key}' in category '{category.id}'") from e
        return key

    def _check_score(self, score: int, where: str) -> int:
        scale = self.catalog.scale
        # bool is an int subclass; True/False are not answers
        if isinstance(score, bool) or not isinstance(score, int):
            raise InvalidSubmissionError(f"Score for {where} must be an integer, got {score!r}")
        if not scale.min <= score <= scale.max:
            raise InvalidSubmissionError(
                f"Score {score} for {where} is outside the range [{scale.min}, {scale.max}]"
            )
        return score

    def record(self, category_id: str, question: Union[str, int], score: int) -> None:
        """Sets (or replaces) the answer to a single question."""
        category = self._category(category_id)
        index = self._question_index(category, question)
        value = self._check_score(score, f"'{category.questions[index].id}'")
        self._answers.setdefault(category.id, {})[index] = value

    def record_many(self, category_id: str, scores: ScoreInput) -> None:
        """
        Records a whole category at once, either as an ordered list (``None``
        marks an unanswered question) or as a mapping keyed by question index
        or question id.
        """
        category = self._category(category_id)
        if isinstance(scores, Mapping):
            items = [(self._mapping_key(category, key), score) for key, score in scores.items()]
        else:
            if len(scores) > category.question_count:
                raise InvalidSubmissionError(
                    f"Category '{category.id}' has {category.question_count} questions, "
                    f"received {len(scores)} answers"
                )
            items = list(enumerate(scores))
        for index, score in items:
            if score is None:
                continue
            self.record(category.id, index, score)

    def is_category_complete(self, category_id: str) -> bool:
        category = self._category(category_id)
        recorded = self._answers.get(category.id, {})
        return all(index in recorded for index in range(category.question_count))

    def completeness(self) -> Dict[str, bool]:
        return {category.id: self.is_category_complete(category.id) for category in self.catalog.categories}

    def is_complete(self) -> bool:
        return all(self.completeness().values())

    def missing_questions(self) -> List[str]:
        missing = []
        for category in self.catalog.categories:
            recorded = self._answers.get(category.id, {})
            missing.extend(q.id for index, q in enumerate(category.questions) if index not in recorded)
        return missing

    def answer_set(self) -> Dict[str, List[int]]:
        """The collected answers, one list per category; gaps hold the scale minimum."""
        minimum = self.catalog.scale.min
        answer_set = {}
        for category in self.catalog.categories:
            recorded = self._answers.get(category.id, {})
            answer_set[category.id] = [recorded.get(index, minimum) for index in range(category.question_count)]
        return answer_set

    def reset(self) -> None:
        logger.debug("Score collector reset")
        self._answers.clear()
