import pytest
from pydantic import ValidationError

from src.schemas.assessment import (
    ContactInfo,
    ContactSubmission,
    SendResultsRequest,
    strip_markup,
    submission_error_key,
)

VALID_CONTACT = {
    "firstName": "Jan",
    "lastName": "Jansen",
    "companyName": "Acme BV",
    "email": "jan@acme.nl",
}


def contact(**overrides) -> dict:
    data = dict(VALID_CONTACT)
    data.update(overrides)
    return data


def error_key(model, payload) -> str:
    with pytest.raises(ValidationError) as exc_info:
        model.model_validate(payload)
    return submission_error_key(exc_info.value)


def test_valid_contact():
    info = ContactInfo.model_validate(VALID_CONTACT)
    assert info.first_name == "Jan"
    assert info.company_name == "Acme BV"


def test_contact_is_sanitized():
    info = ContactInfo.model_validate(contact(firstName="  <b>Jan</b> ", companyName="<Acme>"))
    assert info.first_name == "bJan/b"
    assert info.company_name == "Acme"


def test_strip_markup():
    assert strip_markup("  <script>x</script> ") == "scriptx/script"


@pytest.mark.parametrize("length, valid", [(1, False), (2, True), (50, True), (51, False)])
def test_name_length_bounds(length, valid):
    payload = contact(lastName="x" * length)
    if valid:
        assert ContactInfo.model_validate(payload).last_name == "x" * length
    else:
        assert error_key(ContactInfo, payload) == "invalid_length_error"


@pytest.mark.parametrize("length, valid", [(1, False), (2, True), (100, True), (101, False)])
def test_company_length_bounds(length, valid):
    payload = contact(companyName="c" * length)
    if valid:
        ContactInfo.model_validate(payload)
    else:
        assert error_key(ContactInfo, payload) == "invalid_length_error"


def test_name_length_counts_after_sanitizing():
    assert error_key(ContactInfo, contact(firstName="<a>")) == "invalid_length_error"


@pytest.mark.parametrize("email", ["jan@acme", "jan.acme.nl", "jan@@acme.nl", "jan @acme.nl"])
def test_invalid_email(email):
    assert error_key(ContactInfo, contact(email=email)) == "invalid_email_error"


def test_email_max_length():
    local = "a" * 64
    domain = "b" * (254 - 64 - 1 - 3) + ".nl"
    assert len(f"{local}@{domain}") == 254
    ContactInfo.model_validate(contact(email=f"{local}@{domain}"))
    assert error_key(ContactInfo, contact(email=f"{local}a@{domain}")) == "invalid_email_error"


@pytest.mark.parametrize("field", ["firstName", "lastName", "companyName", "email"])
def test_blank_field_is_required_error(field):
    assert error_key(ContactInfo, contact(**{field: "   "})) == "required_fields_error"


def test_missing_field_is_required_error():
    payload = contact()
    del payload["email"]
    assert error_key(ContactSubmission, {"contactInfo": payload, "scores": {}}) == "required_fields_error"


def test_missing_contact_info_is_invalid_data():
    assert error_key(ContactSubmission, {"scores": {}}) == "invalid_data_error"


def test_bad_scores_type_is_invalid_data():
    payload = {"contactInfo": VALID_CONTACT, "scores": {"strategic": "four"}}
    assert error_key(ContactSubmission, payload) == "invalid_data_error"


def test_invalid_data_wins_over_field_errors():
    payload = {"contactInfo": contact(email="nope"), "scores": "not-a-mapping"}
    assert error_key(ContactSubmission, payload) == "invalid_data_error"


def test_required_wins_over_length_and_email():
    payload = {"contactInfo": contact(firstName="", lastName="x", email="nope"), "scores": {}}
    assert error_key(ContactSubmission, payload) == "required_fields_error"


def test_send_results_request_accepts_client_totals():
    request = SendResultsRequest.model_validate({
        "contactInfo": VALID_CONTACT,
        "scores": {"strategic": [4, 4, 4, 4]},
        "totalScore": 25,
        "overallLevel": "Zwak",
        "language": "nl",
    })
    assert request.total_score == 25
    assert request.overall_level == "Zwak"
    assert request.contact_info.email == "jan@acme.nl"
    assert request.scores == {"strategic": [4, 4, 4, 4]}
