import logging
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Tuple

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse
from pydantic import ValidationError

from services.assessment_engine.engine import AssessmentEngine
from services.assessment_engine.models import AssessmentResult, InvalidSubmissionError, ReportText
from services.assessment_engine.report import (
    AssessmentReport,
    ReportContact,
    build_report,
    render_email_subject,
    render_report_html,
)
from src.core.config import Settings, get_settings
from src.core.logging_config import mask_email
from src.schemas.assessment import (
    AssessmentResultResponse,
    CategoryScoreOut,
    ContactInfo,
    ContactSubmission,
    ImprovementOut,
    ScoreRequest,
    SendResultsRequest,
    SendResultsResponse,
    SubmitResponse,
    TierOut,
    submission_error_key,
)
from src.services.email_delivery import EmailDeliveryClient, EmailDeliveryError

router = APIRouter()
logger = logging.getLogger(__name__)


@lru_cache
def load_engine(catalog_path: str) -> AssessmentEngine:
    return AssessmentEngine(catalog_path)


def get_assessment_engine(settings: Settings = Depends(get_settings)) -> AssessmentEngine:
    return load_engine(settings.catalog_path)


def get_email_client(settings: Settings = Depends(get_settings)) -> EmailDeliveryClient:
    return EmailDeliveryClient(
        api_key=settings.email_api_key,
        sender=settings.email_from,
        api_url=settings.email_api_url,
        timeout=settings.email_timeout_seconds,
    )


# --- Helpers ---

def to_result_response(
    engine: AssessmentEngine,
    result: AssessmentResult,
    completeness: Mapping[str, bool],
    language: str,
) -> Dict[str, Any]:
    catalog = engine.catalog
    threshold = catalog.improvement.threshold
    categories = []
    for category_result in result.categories:
        category = catalog.get_category(category_result.category_id)
        needs_improvement = category_result.average < threshold
        categories.append(CategoryScoreOut(
            id=category.id,
            name=category.name[language],
            weight=category.weight,
            answers=category_result.answers,
            raw=category_result.raw,
            max_possible=category_result.max_possible,
            percentage=category_result.percentage,
            weighted_score=category_result.weighted_score,
            average=category_result.average,
            complete=completeness.get(category.id, False),
            needs_improvement=needs_improvement,
            advice=category.advice[language] if needs_improvement else None,
        ))
    improvements = [
        ImprovementOut(
            category_id=item.category_id,
            name=catalog.get_category(item.category_id).name[language],
            average=item.average,
            advice=item.advice[language],
        )
        for item in result.improvements
    ]
    return AssessmentResultResponse(
        catalog_version=result.catalog_version,
        language=language,
        total_score=result.total_score,
        rounded_total=result.rounded_total,
        tier=TierOut(
            id=result.tier.id,
            label=result.tier.label[language],
            description=result.tier.description[language],
        ),
        complete=all(completeness.values()),
        categories=categories,
        improvements=improvements,
    ).model_dump()


def _language_of(payload: Dict[str, Any], engine: AssessmentEngine) -> str:
    language = payload.get("language") if isinstance(payload, dict) else None
    return engine.resolve_language(language if isinstance(language, str) else None)


def _parse_submission(model, payload: Dict[str, Any], text: ReportText):
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        key = submission_error_key(e)
        logger.warning(f"Rejected submission ({key}): {e.error_count()} validation error(s)")
        raise HTTPException(status_code=400, detail=getattr(text, key))


def _score_submission(
    engine: AssessmentEngine, scores: Mapping[str, Any], text: ReportText
) -> Tuple[AssessmentResult, Dict[str, bool]]:
    try:
        return engine.calculate(scores)
    except InvalidSubmissionError as e:
        logger.warning(f"Invalid scores in submission: {e}")
        raise HTTPException(status_code=400, detail=text.invalid_data_error)


def _report_for(
    engine: AssessmentEngine,
    result: AssessmentResult,
    contact: ContactInfo,
    language: str,
    settings: Settings,
) -> AssessmentReport:
    return build_report(
        engine.catalog,
        result,
        ReportContact(
            first_name=contact.first_name,
            last_name=contact.last_name,
            company_name=contact.company_name,
            email=contact.email,
        ),
        language,
        cta_url=settings.cta_url,
    )


def _recipients(contact_email: str, settings: Settings):
    recipients = [settings.email_internal_recipient]
    if contact_email.lower() != settings.email_internal_recipient.lower():
        recipients.append(contact_email)
    return recipients


# --- Endpoints ---

@router.get("/assessment/questions")
async def get_questions(
    language: Optional[str] = Query(default=None, description="Language tag, e.g. 'nl' or 'en'"),
    engine: AssessmentEngine = Depends(get_assessment_engine),
):
    """Returns the localized questionnaire: categories, weights, questions and the answer scale."""
    return engine.get_questions(language)


@router.post("/assessment/score", response_model=AssessmentResultResponse)
async def score_assessment(
    request: ScoreRequest,
    engine: AssessmentEngine = Depends(get_assessment_engine),
):
    """
    Scores an answer set. Unanswered questions count as the scale minimum;
    the response reports per-category completeness.
    """
    language = engine.resolve_language(request.language)
    try:
        result, completeness = engine.calculate(request.scores)
    except InvalidSubmissionError as e:
        logger.error(f"Invalid submission: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception(f"Unexpected error during assessment scoring: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")
    return to_result_response(engine, result, completeness, language)


@router.post("/assessment/report", response_class=HTMLResponse)
async def render_report(
    payload: Dict[str, Any] = Body(...),
    engine: AssessmentEngine = Depends(get_assessment_engine),
    settings: Settings = Depends(get_settings),
):
    """Renders the printable HTML report for an answer set and contact."""
    language = _language_of(payload, engine)
    text = engine.catalog.text_for(language)
    submission = _parse_submission(ContactSubmission, payload, text)
    result, _ = _score_submission(engine, submission.scores, text)
    report = _report_for(engine, result, submission.contact_info, language, settings)
    return HTMLResponse(render_report_html(report))


@router.post("/assessment/send-results", response_model=SendResultsResponse)
async def send_results(
    payload: Dict[str, Any] = Body(...),
    engine: AssessmentEngine = Depends(get_assessment_engine),
    email_client: EmailDeliveryClient = Depends(get_email_client),
    settings: Settings = Depends(get_settings),
):
    """
    Emails the formatted report to the internal address and the contact.
    Validation problems are returned verbatim (400); anything else collapses
    into one generic message (500).
    """
    language = _language_of(payload, engine)
    text = engine.catalog.text_for(language)
    submission = _parse_submission(SendResultsRequest, payload, text)
    result, _ = _score_submission(engine, submission.scores, text)

    if submission.total_score is not None and submission.total_score != result.rounded_total:
        logger.warning(
            f"Client total score {submission.total_score} differs from computed {result.rounded_total}; using computed value"
        )
    if submission.overall_level and submission.overall_level not in result.tier.label.values():
        logger.warning(
            f"Client level '{submission.overall_level}' differs from computed tier '{result.tier.id}'; using computed value"
        )

    contact = submission.contact_info
    try:
        report = _report_for(engine, result, contact, language, settings)
        await email_client.send(
            _recipients(contact.email, settings),
            render_email_subject(report),
            render_report_html(report),
        )
    except EmailDeliveryError as e:
        logger.error(f"Email delivery failed for {mask_email(contact.email)}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=text.general_error)
    except Exception as e:
        logger.exception(f"Unexpected error in send-results: {e}")
        raise HTTPException(status_code=500, detail=text.general_error)

    return {"success": True}


@router.post("/assessment/submit", response_model=SubmitResponse)
async def submit_assessment(
    payload: Dict[str, Any] = Body(...),
    engine: AssessmentEngine = Depends(get_assessment_engine),
    email_client: EmailDeliveryClient = Depends(get_email_client),
    settings: Settings = Depends(get_settings),
):
    """
    Scores the assessment and makes one best-effort attempt to email the
    report. A failed email never blocks the result; the response carries
    ``email_sent`` and a notice for the user instead.
    """
    language = _language_of(payload, engine)
    text = engine.catalog.text_for(language)
    submission = _parse_submission(ContactSubmission, payload, text)
    result, completeness = _score_submission(engine, submission.scores, text)
    response = to_result_response(engine, result, completeness, language)

    contact = submission.contact_info
    email_sent = False
    try:
        report = _report_for(engine, result, contact, language, settings)
        await email_client.send(
            _recipients(contact.email, settings),
            render_email_subject(report),
            render_report_html(report),
        )
        email_sent = True
    except EmailDeliveryError as e:
        logger.warning(f"Email delivery failed for {mask_email(contact.email)}, showing results anyway: {e}")
    except Exception as e:
        logger.exception(f"Unexpected error while emailing report, showing results anyway: {e}")

    response["email_sent"] = email_sent
    response["notice"] = text.email_sent_notice if email_sent else text.email_error_notice
    return response
