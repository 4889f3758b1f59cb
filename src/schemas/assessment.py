import re
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
EMAIL_MAX_LENGTH = 254
NAME_LENGTH = (2, 50)
COMPANY_LENGTH = (2, 100)

# category id -> ordered answers (None = unanswered), or answers keyed by question index/id
ScoresPayload = Dict[str, Union[List[Optional[int]], Dict[str, Optional[int]]]]


def strip_markup(value: str) -> str:
    """Removes angle brackets and surrounding whitespace."""
    return value.replace("<", "").replace(">", "").strip()


def _check_length(value: str, bounds, field: str) -> str:
    low, high = bounds
    if not value:
        raise PydanticCustomError("required_fields", "{field} is required", {"field": field})
    if not low <= len(value) <= high:
        raise PydanticCustomError(
            "invalid_length",
            "{field} must be between {low} and {high} characters",
            {"field": field, "low": low, "high": high},
        )
    return value


class ContactInfo(BaseModel):
    """Contact identity as collected by the contact step, sanitized on the way in."""
    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    company_name: str = Field(..., alias="companyName")
    email: str

    @field_validator("first_name", "last_name", "company_name", "email", mode="before")
    @classmethod
    def sanitize(cls, value):
        if isinstance(value, str):
            return strip_markup(value)
        return value

    @field_validator("first_name", "last_name")
    @classmethod
    def check_name(cls, value: str, info) -> str:
        return _check_length(value, NAME_LENGTH, info.field_name)

    @field_validator("company_name")
    @classmethod
    def check_company(cls, value: str) -> str:
        return _check_length(value, COMPANY_LENGTH, "company_name")

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("required_fields", "email is required")
        if len(value) > EMAIL_MAX_LENGTH or not EMAIL_PATTERN.match(value):
            raise PydanticCustomError("invalid_email", "email address is not valid")
        return value


class ScoreRequest(BaseModel):
    scores: ScoresPayload
    language: Optional[str] = None


class ContactSubmission(BaseModel):
    """Scores plus the contact they belong to; used by submit and report."""
    model_config = ConfigDict(populate_by_name=True)

    contact_info: ContactInfo = Field(..., alias="contactInfo")
    scores: ScoresPayload
    language: Optional[str] = None


class SendResultsRequest(ContactSubmission):
    """
    Delivery contract. ``totalScore`` and ``overallLevel`` are accepted for
    compatibility but the server recomputes both from ``scores``.
    """
    total_score: Optional[int] = Field(default=None, alias="totalScore")
    overall_level: Optional[str] = Field(default=None, alias="overallLevel")


# Maps a validation failure onto the catalog's message keys, most general first
_ERROR_PRIORITY = ["invalid_data_error", "required_fields_error", "invalid_length_error", "invalid_email_error"]


def submission_error_key(exc: ValidationError) -> str:
    """
    Picks the report-text key describing a failed submission: structural
    problems (missing payload parts, bad score types) win over field-level
    contact problems.
    """
    keys = set()
    for error in exc.errors():
        loc = error.get("loc", ())
        error_type = error.get("type")
        in_contact = len(loc) >= 2 and loc[0] in ("contactInfo", "contact_info")
        if error_type == "invalid_email":
            keys.add("invalid_email_error")
        elif error_type == "invalid_length":
            keys.add("invalid_length_error")
        elif error_type == "required_fields" or (in_contact and error_type == "missing"):
            keys.add("required_fields_error")
        else:
            keys.add("invalid_data_error")
    for key in _ERROR_PRIORITY:
        if key in keys:
            return key
    return "invalid_data_error"


# --- Responses ---

class TierOut(BaseModel):
    id: str
    label: str
    description: str


class CategoryScoreOut(BaseModel):
    id: str
    name: str
    weight: int
    answers: List[int]
    raw: int
    max_possible: int
    percentage: float
    weighted_score: float
    average: float
    complete: bool
    needs_improvement: bool
    advice: Optional[str] = None


class ImprovementOut(BaseModel):
    category_id: str
    name: str
    average: float
    advice: str


class AssessmentResultResponse(BaseModel):
    catalog_version: str
    language: str
    total_score: float
    rounded_total: int
    tier: TierOut
    complete: bool
    categories: List[CategoryScoreOut]
    improvements: List[ImprovementOut]


class SubmitResponse(AssessmentResultResponse):
    email_sent: bool
    notice: str


class SendResultsResponse(BaseModel):
    success: bool
