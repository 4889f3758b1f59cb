from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Optional

# language tag -> text
LocalizedText = Dict[str, str]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ScaleDefinition(_Frozen):
    min: int = 0
    max: int = 4


class ImprovementRules(_Frozen):
    threshold: float = 3
    max_items: int = 3


class QuestionDefinition(_Frozen):
    id: str
    text: LocalizedText


class CategoryDefinition(_Frozen):
    id: str
    weight: int = Field(..., ge=0, le=100)
    name: LocalizedText
    advice: LocalizedText
    questions: List[QuestionDefinition] = Field(..., min_length=1)

    @property
    def question_count(self) -> int:
        return len(self.questions)


class TierDefinition(_Frozen):
    id: str
    min_score: float
    label: LocalizedText
    description: LocalizedText


class ReportText(_Frozen):
    email_title: str
    contact_details: str
    name: str
    company: str
    email: str
    overall_score: str
    detailed_scores: str
    score: str
    improvement_advice: str
    action_plan: str
    action_plan_description: str
    score_explanation: str
    score_range: str
    cta_title: str
    cta_button: str
    disclaimer: str
    email_subject: str
    rate_limit_error: str
    invalid_data_error: str
    required_fields_error: str
    invalid_length_error: str
    invalid_email_error: str
    general_error: str
    email_sent_notice: str
    email_error_notice: str


class AssessmentCatalog(_Frozen):
    version: str
    released_at: str
    default_language: str
    languages: List[str] = Field(..., min_length=1)
    scale: ScaleDefinition = ScaleDefinition()
    improvement: ImprovementRules = ImprovementRules()
    categories: List[CategoryDefinition] = Field(..., min_length=1)
    tiers: List[TierDefinition] = Field(..., min_length=1)
    report_text: Dict[str, ReportText]

    def get_category(self, category_id: str) -> Optional[CategoryDefinition]:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def text_for(self, language: str) -> ReportText:
        return self.report_text.get(language) or self.report_text[self.default_language]


# --- Derived results ---

class CategoryResult(_Frozen):
    category_id: str
    weight: int
    answers: List[int]
    raw: int
    max_possible: int
    percentage: float
    weighted_score: float
    average: float


class ImprovementItem(_Frozen):
    category_id: str
    average: float
    advice: LocalizedText


class AssessmentResult(_Frozen):
    catalog_version: str
    total_score: float
    rounded_total: int
    tier: TierDefinition
    categories: List[CategoryResult]
    improvements: List[ImprovementItem]

    def category(self, category_id: str) -> Optional[CategoryResult]:
        for result in self.categories:
            if result.category_id == category_id:
                return result
        return None


# Custom Error Classes
class InvalidSubmissionError(ValueError):
    """Raised for answers that cannot be recorded (unknown ids, out-of-range scores)."""
    pass

class CatalogValidationError(ValueError):
    """Raised when the questionnaire catalog breaks one of its invariants."""
    pass
