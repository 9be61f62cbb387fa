from src.structurify.error_feedback import build_error_feedback
from src.structurify.errors import ApiError, ParsingError, ValidationError


def test_feedback_for_no_error_is_silent():
    feedback = build_error_feedback(None)
    assert feedback["level"] == "none"
    assert feedback["action"] == "none"


def test_feedback_for_api_error_points_to_settings():
    feedback = build_error_feedback(ApiError("Groq API key not found. Please set it in the settings."))
    assert feedback["level"] == "error"
    assert feedback["action"] == "open_settings"
    assert "API key" in feedback["message"]
    assert "settings" in feedback["guidance"]


def test_feedback_for_parsing_error_suggests_retry():
    feedback = build_error_feedback(ParsingError("The AI returned malformed JSON. Please try again."))
    assert feedback["level"] == "warning"
    assert feedback["action"] == "retry"
    assert feedback["guidance"].endswith("Try again.")


def test_feedback_for_validation_error_includes_reason():
    feedback = build_error_feedback(ValidationError('Node 2 is missing a string "label".'))
    assert feedback["action"] == "retry"
    assert feedback["message"].endswith('Reason: Node 2 is missing a string "label".')


def test_feedback_for_unexpected_error():
    feedback = build_error_feedback(RuntimeError("boom"))
    assert feedback["level"] == "error"
    assert feedback["action"] == "report"
    assert feedback["message"] == "An unexpected error occurred: boom"
