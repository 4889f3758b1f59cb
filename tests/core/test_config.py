import json
import logging
from datetime import datetime

from src.core.config import Settings
from src.core.logging_config import (
    CustomJsonFormatter,
    EmailMaskingFilter,
    mask_email,
    mask_emails_in_text,
    setup_logging,
)


def test_defaults():
    settings = Settings()
    assert settings.rate_limit_max_requests == 5
    assert settings.rate_limit_window_seconds == 60
    assert settings.rate_limit_backend == "memory"
    assert settings.email_timeout_seconds == 10.0
    assert settings.catalog_path.endswith("assessment_catalog.yml")
    assert "/api/v1/assessment/send-results" in settings.rate_limit_paths


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("ASSESSMENT_RATE_LIMIT_MAX_REQUESTS", "10")
    monkeypatch.setenv("ASSESSMENT_RATE_LIMIT_BACKEND", "redis")
    monkeypatch.setenv("ASSESSMENT_EMAIL_API_KEY", "re_secret")
    monkeypatch.setenv("ASSESSMENT_CORS_ORIGINS", '["https://example.com"]')
    settings = Settings()
    assert settings.rate_limit_max_requests == 10
    assert settings.rate_limit_backend == "redis"
    assert settings.email_api_key == "re_secret"
    assert settings.cors_origins == ["https://example.com"]


def test_mask_email():
    assert mask_email("jan@acme.nl") == "j***@acme.nl"
    assert mask_email("not-an-email") == "***"


def test_json_formatter_fields():
    formatter = CustomJsonFormatter('%(timestamp)s %(level)s %(name)s %(message)s')
    record = logging.LogRecord("assessment", logging.WARNING, __file__, 12, "hello %s", ("world",), None)
    output = json.loads(formatter.format(record))
    assert output["message"] == "hello world"
    assert output["level"] == "WARNING"
    assert output["name"] == "assessment"
    assert output["lineno"] == 12
    assert output["service"] == "founder-dependency-assessment"
    assert datetime.fromisoformat(output["timestamp"]).tzinfo is not None


def test_mask_emails_in_text():
    assert mask_emails_in_text("sent to jan@acme.nl") == "sent to j***@acme.nl"
    assert mask_emails_in_text("a@b.io and kees.de.vries@x.example.com") == "a***@b.io and k***@x.example.com"
    assert mask_emails_in_text("no address here") == "no address here"


def test_email_masking_filter_rewrites_interpolated_args():
    record = logging.LogRecord("assessment", logging.INFO, __file__, 3, "Report for %s sent", ("jan@acme.nl",), None)
    assert EmailMaskingFilter().filter(record) is True
    assert record.getMessage() == "Report for j***@acme.nl sent"
    assert record.args is None


def test_email_masking_filter_leaves_plain_records_alone():
    record = logging.LogRecord("assessment", logging.INFO, __file__, 3, "score %d", (75,), None)
    EmailMaskingFilter().filter(record)
    assert record.msg == "score %d"
    assert record.args == (75,)


def test_setup_logging_installs_one_masking_handler(monkeypatch):
    root_logger = logging.getLogger()
    monkeypatch.setattr(root_logger, "handlers", [])
    monkeypatch.setattr(root_logger, "level", root_logger.level)
    setup_logging("WARNING")
    setup_logging("DEBUG")
    service_handlers = [h for h in root_logger.handlers if isinstance(h.formatter, CustomJsonFormatter)]
    assert len(service_handlers) == 1
    assert any(isinstance(f, EmailMaskingFilter) for f in service_handlers[0].filters)
    assert root_logger.level == logging.DEBUG
