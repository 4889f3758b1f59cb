# services/assessment_engine/report.py
# Turns a scored assessment into a report: a structured document for on-screen
# rendering and an HTML body for the emailed version.

import logging
from html import escape
from typing import List, Optional

from pydantic import BaseModel

from .models import AssessmentCatalog, AssessmentResult, ReportText
from .scoring import round_half_up

logger = logging.getLogger(__name__)


class ReportContact(BaseModel):
    first_name: str
    last_name: str
    company_name: str
    email: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class QuestionLine(BaseModel):
    question_id: str
    text: str
    score: int


class CategorySection(BaseModel):
    category_id: str
    name: str
    weight: int
    percentage: int
    average: float
    questions: List[QuestionLine]
    needs_improvement: bool
    advice: Optional[str] = None


class ActionPlanItem(BaseModel):
    rank: int
    category_id: str
    name: str
    advice: str


class AssessmentReport(BaseModel):
    language: str
    catalog_version: str
    title: str
    contact: ReportContact
    total_score: int
    tier_id: str
    tier_label: str
    tier_description: str
    categories: List[CategorySection]
    action_plan: List[ActionPlanItem]
    score_legend: str
    cta_title: str
    cta_button: str
    cta_url: str
    disclaimer: str
    subject: str
    labels: ReportText


def build_report(
    catalog: AssessmentCatalog,
    result: AssessmentResult,
    contact: ReportContact,
    language: str,
    cta_url: str = "",
) -> AssessmentReport:
    """
    Assembles every field the report needs from the scored result and the
    catalog text in ``language``.
    """
    if language not in catalog.languages:
        logger.warning(f"Unsupported report language '{language}', using '{catalog.default_language}'")
        language = catalog.default_language
    text = catalog.text_for(language)
    threshold = catalog.improvement.threshold

    sections = []
    for category_result in result.categories:
        category = catalog.get_category(category_result.category_id)
        needs_improvement = category_result.average < threshold
        sections.append(
            CategorySection(
                category_id=category.id,
                name=category.name[language],
                weight=category.weight,
                percentage=round_half_up(category_result.percentage),
                average=category_result.average,
                questions=[
                    QuestionLine(question_id=q.id, text=q.text[language], score=score)
                    for q, score in zip(category.questions, category_result.answers)
                ],
                needs_improvement=needs_improvement,
                advice=category.advice[language] if needs_improvement else None,
            )
        )

    action_plan = [
        ActionPlanItem(
            rank=rank,
            category_id=item.category_id,
            name=catalog.get_category(item.category_id).name[language],
            advice=item.advice[language],
        )
        for rank, item in enumerate(result.improvements, start=1)
    ]

    subject = text.email_subject.format(company=contact.company_name, score=result.rounded_total)

    return AssessmentReport(
        language=language,
        catalog_version=result.catalog_version,
        title=text.email_title,
        contact=contact,
        total_score=result.rounded_total,
        tier_id=result.tier.id,
        tier_label=result.tier.label[language],
        tier_description=result.tier.description[language],
        categories=sections,
        action_plan=action_plan,
        score_legend=text.score_range,
        cta_title=text.cta_title,
        cta_button=text.cta_button,
        cta_url=cta_url,
        disclaimer=text.disclaimer,
        subject=subject,
        labels=text,
    )


def render_email_subject(report: AssessmentReport) -> str:
    return report.subject


def _category_html(section: CategorySection, text: ReportText) -> str:
    questions = "".join(
        f"""
        <div style="margin-bottom: 10px; padding: 10px; background: white; border-radius: 4px;">
          <p style="margin: 0 0 5px 0; font-weight: 500;">{escape(line.text)}</p>
          <p style="margin: 0; color: #666;"><strong>{escape(text.score)}: {line.score}</strong></p>
        </div>"""
        for line in section.questions
    )
    advice = ""
    if section.needs_improvement and section.advice:
        advice = f"""
        <div style="background: #fff3e0; padding: 12px; border-radius: 6px; border-left: 4px solid #ff9800; margin-top: 10px;">
          <h4 style="color: #e65100; margin: 0 0 8px 0; font-size: 14px;">{escape(text.improvement_advice)}</h4>
          <p style="margin: 0; color: #666; font-size: 13px; line-height: 1.4;">{escape(section.advice)}</p>
        </div>"""
    return f"""
      <div style="margin-bottom: 20px; background: #f8f9fa; padding: 15px; border-radius: 8px;">
        <h3 style="color: #555; margin-top: 0;">{escape(section.name)} ({section.weight}%)</h3>
        {questions}
        {advice}
      </div>"""


def render_report_html(report: AssessmentReport) -> str:
    """
    Renders the report as a self-contained, inline-styled HTML document
    suitable both as an email body and for printing. All interpolated
    values are escaped.
    """
    text = report.labels
    contact = report.contact

    action_plan = ""
    if report.action_plan:
        items = "".join(
            f"""
          <div style="margin-bottom: 15px; background: white; padding: 12px; border-radius: 6px;">
            <strong style="color: #2e7d32;">{item.rank}.</strong>
            <strong style="color: #333;">{escape(item.name)}</strong>
            <p style="margin: 6px 0 0 0; color: #666; font-size: 13px; line-height: 1.4;">{escape(item.advice)}</p>
          </div>"""
            for item in report.action_plan
        )
        action_plan = f"""
      <div style="background: #e8f5e8; padding: 20px; border-radius: 8px; margin-bottom: 20px; border-left: 4px solid #4caf50;">
        <h2 style="color: #2e7d32; margin-top: 0;">{escape(text.action_plan)}</h2>
        <p style="color: #666; margin-bottom: 15px;">{escape(text.action_plan_description)}</p>
        {items}
      </div>"""

    cta = ""
    if report.cta_url:
        cta = f"""
      <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; text-align: center; margin-bottom: 20px;">
        <h3 style="color: #333; margin-top: 0;">{escape(report.cta_title)}</h3>
        <a href="{escape(report.cta_url, quote=True)}" style="display: inline-block; background: #1565c0; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; font-weight: bold; margin-top: 10px;">{escape(report.cta_button)}</a>
      </div>"""

    categories = "".join(_category_html(section, text) for section in report.categories)

    return f"""<!DOCTYPE html>
<html lang="{escape(report.language, quote=True)}">
<head><meta charset="utf-8"><title>{escape(report.title)}</title></head>
<body>
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <div style="text-align: center; margin-bottom: 30px;">
        <h1 style="color: #333;">{escape(report.title)}</h1>
      </div>

      <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; margin-bottom: 20px;">
        <h2 style="color: #333; margin-top: 0;">{escape(text.contact_details)}</h2>
        <p><strong>{escape(text.name)}:</strong> {escape(contact.full_name)}</p>
        <p><strong>{escape(text.company)}:</strong> {escape(contact.company_name)}</p>
        <p><strong>{escape(text.email)}:</strong> {escape(contact.email)}</p>
      </div>

      <div style="background: #e3f2fd; padding: 20px; border-radius: 8px; margin-bottom: 20px; text-align: center;">
        <h2 style="color: #1565c0; margin-top: 0;">{escape(text.overall_score)}</h2>
        <div style="font-size: 48px; font-weight: bold; color: #1565c0;">{report.total_score}</div>
        <div style="font-size: 18px; color: #1565c0; margin-top: 10px;">{escape(report.tier_label)}</div>
        <div style="font-size: 14px; color: #555; margin-top: 6px;">{escape(report.tier_description)}</div>
      </div>

      <div style="margin-bottom: 20px;">
        <h2 style="color: #333;">{escape(text.detailed_scores)}</h2>
        {categories}
      </div>
      {action_plan}
      <div style="background: #fff3e0; padding: 15px; border-radius: 8px; border-left: 4px solid #ff9800; margin-bottom: 30px;">
        <p style="margin: 0; color: #666; font-size: 14px;">
          <strong>{escape(text.score_explanation)}</strong><br>
          {escape(report.score_legend)}
        </p>
      </div>
      {cta}
      <div style="text-align: center; color: #999; font-size: 12px; padding: 20px 0;">
        <p style="margin: 0;">{escape(report.disclaimer)}</p>
      </div>
    </div>
</body>
</html>"""
