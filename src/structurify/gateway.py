import json
import logging
import os
import re
import threading
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Optional, Union

from .errors import ApiError, ParsingError
from .plans import DiagramKind, parse_diagram_kind
from .templates import build_user_prompt, get_instruction_template

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "llama-3.3-70b-versatile"
DEFAULT_BASE_URL = "https://api.groq.com/openai/v1/chat/completions"

_FENCED_BLOCK_RE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n(.*?)```", re.DOTALL)


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and the gateway."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class GroqJSONClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: int = 40,
        json_mode: bool = True,
        poll_interval: float = 0.1,
        urlopen: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.api_key = api_key or os.getenv("GROQ_API_KEY", "")
        self.model = model or os.getenv("GROQ_MODEL", DEFAULT_MODEL)
        self.base_url = base_url or os.getenv("GROQ_BASE_URL", DEFAULT_BASE_URL)
        self.timeout_seconds = timeout_seconds
        self.json_mode = json_mode
        self.poll_interval = poll_interval
        self._urlopen = urlopen or urllib.request.urlopen

    def is_enabled(self) -> bool:
        return bool(self.api_key)

    def generate_plan(
        self,
        source_code: str,
        diagram_kind: Union[str, DiagramKind],
        instruction_template: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> str:
        """Asks the model for a diagram plan and returns its JSON text.

        Returns an empty string when ``cancellation`` fires before the
        response arrives. Raises ApiError for credential, network and service
        failures, and ParsingError when no JSON text can be extracted.
        """
        kind = parse_diagram_kind(diagram_kind)
        if not self.is_enabled():
            raise ApiError("Groq API key not found. Please set it in the settings.")
        if cancellation is not None and cancellation.is_cancelled:
            return ""

        payload = {
            "model": self.model,
            "temperature": 0.1,
            "messages": [
                {"role": "system", "content": instruction_template or get_instruction_template(kind)},
                {"role": "user", "content": build_user_prompt(source_code)},
            ],
        }
        if self.json_mode:
            payload["response_format"] = {"type": "json_object"}

        request = urllib.request.Request(
            url=self.base_url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
        )
        logger.info(
            "Requesting %s plan from model %s (%d chars of code)",
            kind.value,
            self.model,
            len(source_code or ""),
        )

        raw = self._send(request, cancellation)
        if raw is None:
            logger.info("Plan request cancelled by the caller")
            return ""
        content = _read_message_content(raw)
        logger.debug("Model returned %d chars", len(content))
        return extract_json_text(content)

    def _send(self, request: urllib.request.Request, cancellation: Optional[CancellationToken]) -> Optional[str]:
        if cancellation is None:
            return self._post(request)

        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self._post, request)
        try:
            while True:
                done, _ = wait([future], timeout=self.poll_interval)
                if cancellation.is_cancelled:
                    future.cancel()
                    return None
                if done:
                    return future.result()
        finally:
            # An abandoned request finishes in the background and its result is discarded.
            executor.shutdown(wait=False)

    def _post(self, request: urllib.request.Request) -> str:
        try:
            with self._urlopen(request, timeout=self.timeout_seconds) as response:
                return response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            details = exc.read().decode("utf-8", errors="replace")
            if exc.code in (401, 403):
                raise ApiError(
                    "Groq API key is missing or invalid. Open settings to update it."
                ) from exc
            raise ApiError(f"Groq API error ({exc.code}): {_error_message(details)}") from exc
        except urllib.error.URLError as exc:
            raise ApiError(f"Network error while contacting Groq: {exc.reason}") from exc
        except OSError as exc:
            raise ApiError(f"Network error while contacting Groq: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise ApiError("Groq API returned a response that is not UTF-8 text.") from exc


def extract_json_text(text: str) -> str:
    """Pulls the JSON object out of a model reply that may wrap it in prose or fences."""
    stripped = (text or "").strip()
    fenced = _FENCED_BLOCK_RE.search(stripped)
    if fenced:
        stripped = fenced.group(1).strip()
    if stripped.startswith("{") and stripped.endswith("}"):
        return stripped

    start = stripped.find("{")
    end = stripped.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise ParsingError("The AI response did not include a JSON object. Please try again.")
    return stripped[start : end + 1]


def _read_message_content(raw: str) -> str:
    try:
        parsed = json.loads(raw)
        content = parsed["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise ApiError("Groq API returned an unexpected response.") from exc
    if not isinstance(content, str) or not content.strip():
        raise ParsingError("The AI returned an empty response. Please try again.")
    return content


def _error_message(details: str) -> str:
    try:
        message = json.loads(details)["error"]["message"]
    except (ValueError, KeyError, TypeError):
        message = details.strip()
    return str(message)[:300] or "no details"
