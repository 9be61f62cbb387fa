from importlib import import_module
from typing import Any

__all__ = [
    "ApiError",
    "ParsingError",
    "ValidationError",
    "CancellationToken",
    "DiagramKind",
    "DiagramPipeline",
    "GroqJSONClient",
    "compile_plan",
    "compile_response",
    "sanitize_plan",
    "validate_plan",
]

_EXPORTS = {
    "ApiError": ".errors",
    "ParsingError": ".errors",
    "ValidationError": ".errors",
    "CancellationToken": ".gateway",
    "GroqJSONClient": ".gateway",
    "DiagramKind": ".plans",
    "DiagramPipeline": ".pipeline",
    "compile_response": ".pipeline",
    "compile_plan": ".syntax_compiler",
    "sanitize_plan": ".plan_sanitizer",
    "validate_plan": ".plan_validator",
}


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        module = import_module(_EXPORTS[name], __name__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
