from typing import Dict, Optional

from .errors import ApiError, ParsingError, ValidationError


def build_error_feedback(error: Optional[BaseException]) -> Dict[str, str]:
    if error is None:
        return {"level": "none", "title": "", "message": "", "guidance": "", "action": "none"}

    detail = str(error).strip()

    if isinstance(error, ApiError):
        return {
            "level": "error",
            "title": "Model API Error",
            "message": detail or "The model API request failed.",
            "guidance": "Open settings and check the API key and model, then retry.",
            "action": "open_settings",
        }

    if isinstance(error, ParsingError):
        return {
            "level": "warning",
            "title": "AI Response Error",
            "message": detail or "The AI response could not be read as JSON.",
            "guidance": "The model occasionally misbehaves. Try again.",
            "action": "retry",
        }

    if isinstance(error, ValidationError):
        return {
            "level": "warning",
            "title": "AI Response Error",
            "message": (
                "The AI response did not match the diagram structure."
                + (f" Reason: {detail}" if detail else "")
            ),
            "guidance": "Try again, or select a smaller block of code.",
            "action": "retry",
        }

    return {
        "level": "error",
        "title": "Unexpected Error",
        "message": f"An unexpected error occurred: {detail or type(error).__name__}",
        "guidance": "",
        "action": "report",
    }
