import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

from .diagram_lint import LintReport, lint_plan
from .errors import ParsingError, ValidationError
from .gateway import CancellationToken, GroqJSONClient
from .plan_sanitizer import sanitize_plan
from .plan_validator import validate_plan
from .plans import DiagramKind, DiagramRequest, ValidatedPlan, parse_diagram_kind
from .syntax_compiler import compile_plan
from .templates import get_instruction_template

logger = logging.getLogger(__name__)


class PlanClient(Protocol):
    def generate_plan(
        self,
        source_code: str,
        diagram_kind: Union[str, DiagramKind],
        instruction_template: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> str:  # pragma: no cover - runtime integration path
        ...


@dataclass
class DiagramResult:
    diagram_kind: DiagramKind
    mermaid_code: str
    cancelled: bool = False
    plan: Optional[ValidatedPlan] = None
    lint: Optional[LintReport] = None


class DiagramPipeline:
    """Single-pass Gateway -> parse -> sanitize -> validate -> compile chain.

    There is no retry loop: ApiError and ParsingError from the gateway and
    ValidationError from the validator propagate to the caller, and no
    partial diagram is produced. Cancellation yields a result with
    ``cancelled=True`` instead of an error.
    """

    def __init__(self, llm_client: Optional[PlanClient] = None, enable_lint: bool = True) -> None:
        self.llm_client = llm_client or GroqJSONClient()
        self.enable_lint = enable_lint

    def run(
        self,
        request: DiagramRequest,
        cancellation: Optional[CancellationToken] = None,
    ) -> DiagramResult:
        kind = parse_diagram_kind(request.diagram_kind)
        raw_text = self.llm_client.generate_plan(
            request.source_text,
            kind,
            get_instruction_template(kind),
            cancellation,
        )
        if not raw_text:
            return DiagramResult(diagram_kind=kind, mermaid_code="", cancelled=True)

        plan = build_plan(kind, raw_text)
        mermaid_code = compile_plan(plan)
        report = lint_plan(plan) if self.enable_lint else None
        logger.info(
            "Compiled %s diagram with %d lines",
            kind.value,
            mermaid_code.count("\n") + 1,
        )
        return DiagramResult(diagram_kind=kind, mermaid_code=mermaid_code, plan=plan, lint=report)

    def generate(
        self,
        source_text: str,
        diagram_kind: Union[str, DiagramKind],
        cancellation: Optional[CancellationToken] = None,
    ) -> DiagramResult:
        request = DiagramRequest(source_text=source_text, diagram_kind=parse_diagram_kind(diagram_kind))
        return self.run(request, cancellation)


def parse_plan_text(raw_text: str) -> Any:
    try:
        return json.loads(raw_text)
    except (TypeError, ValueError) as exc:
        raise ParsingError("The AI returned malformed JSON. Please try again.") from exc


def build_plan(diagram_kind: Union[str, DiagramKind], raw_text: str) -> ValidatedPlan:
    kind = parse_diagram_kind(diagram_kind)
    candidate = sanitize_plan(kind, parse_plan_text(raw_text))
    try:
        return validate_plan(kind, candidate)
    except ValidationError:
        logger.warning("Rejected %s plan after sanitization", kind.value)
        raise


def compile_response(diagram_kind: Union[str, DiagramKind], raw_text: str) -> str:
    return compile_plan(build_plan(diagram_kind, raw_text))
