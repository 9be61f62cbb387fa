from pathlib import Path
import logging
import os
import sys

import streamlit as st
import streamlit.components.v1 as components

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from src.structurify.error_feedback import build_error_feedback  # noqa: E402
from src.structurify.errors import DiagramError  # noqa: E402
from src.structurify.gateway import DEFAULT_MODEL, GroqJSONClient  # noqa: E402
from src.structurify.pipeline import DiagramPipeline  # noqa: E402
from src.structurify.plans import DIAGRAM_KINDS  # noqa: E402
from src.structurify.preview import build_preview_html, get_export_filename  # noqa: E402
from src.structurify.source_text import (  # noqa: E402
    SOURCE_LANGUAGES,
    SourceFileError,
    read_source_file,
)
from src.structurify.templates import list_instruction_templates  # noqa: E402

logging.basicConfig(
    level=os.getenv("STRUCTURIFY_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("structurify.app")


def get_runtime_llm_client() -> GroqJSONClient:
    key_source = str(st.session_state.get("llm_key_source", "Environment"))
    env_key = str(os.getenv("GROQ_API_KEY", "")).strip()
    app_key = str(st.session_state.get("llm_api_key", "")).strip()
    api_key = app_key if key_source == "Input in App" else env_key
    model = str(st.session_state.get("llm_model", "")).strip() or str(
        os.getenv("GROQ_MODEL", DEFAULT_MODEL)
    ).strip()
    return GroqJSONClient(api_key=api_key, model=model or DEFAULT_MODEL)


def get_pipeline() -> DiagramPipeline:
    return DiagramPipeline(llm_client=get_runtime_llm_client())


def ensure_state() -> None:
    if "source_code" not in st.session_state:
        st.session_state.source_code = ""
    if "diagram_type" not in st.session_state:
        st.session_state.diagram_type = DIAGRAM_KINDS[0]
    if "mermaid_code" not in st.session_state:
        st.session_state.mermaid_code = ""
    if "mermaid_code_type" not in st.session_state:
        st.session_state.mermaid_code_type = DIAGRAM_KINDS[0]
    if "lint_findings" not in st.session_state:
        st.session_state.lint_findings = []
    if "last_feedback" not in st.session_state:
        st.session_state.last_feedback = build_error_feedback(None)
    if "llm_key_source" not in st.session_state:
        st.session_state.llm_key_source = "Environment"
    if "llm_api_key" not in st.session_state:
        st.session_state.llm_api_key = ""
    if "llm_model" not in st.session_state:
        st.session_state.llm_model = str(os.getenv("GROQ_MODEL", DEFAULT_MODEL))


def run_generation(diagram_type: str, source_code: str) -> None:
    try:
        result = get_pipeline().generate(source_code, diagram_type)
    except DiagramError as exc:
        logger.warning("Diagram generation failed: %s", type(exc).__name__)
        st.session_state.last_feedback = build_error_feedback(exc)
        return

    if result.cancelled:
        st.session_state.last_feedback = build_error_feedback(None)
        return

    st.session_state.mermaid_code = result.mermaid_code
    st.session_state.mermaid_code_type = diagram_type
    st.session_state.lint_findings = list(result.lint.findings) if result.lint else []
    st.session_state.last_feedback = build_error_feedback(None)


def render_feedback(feedback: dict) -> None:
    if feedback.get("level") in (None, "none"):
        return
    text = f"**{feedback['title']}**: {feedback['message']}"
    if feedback.get("guidance"):
        text += f"\n\n{feedback['guidance']}"
    if feedback["level"] == "error":
        st.error(text)
    else:
        st.warning(text)
    if feedback.get("action") == "open_settings":
        st.info("Open the sidebar **LLM Settings** to configure the Groq API key.")


def render_lint_findings(findings: list) -> None:
    if not findings:
        return
    with st.expander(f"Diagram checks ({len(findings)})", expanded=False):
        for finding in findings:
            marker = "Error" if finding.severity == "error" else "Warning"
            st.markdown(f"- {marker} `{finding.rule_id}`: {finding.message}")


def render_mermaid_preview(mermaid_code: str, export_basename: str, height: int = 560) -> None:
    components.html(build_preview_html(mermaid_code, export_basename), height=height, scrolling=True)


st.set_page_config(layout="wide")
st.title("Structurify: Code to Diagram")
ensure_state()

with st.sidebar:
    st.markdown("### LLM Settings")
    st.session_state.llm_key_source = st.radio(
        "API Key Source",
        ["Environment", "Input in App"],
        index=0 if st.session_state.llm_key_source == "Environment" else 1,
        horizontal=True,
        key="llm_key_source_radio",
    )
    st.session_state.llm_model = st.text_input(
        "Model",
        value=st.session_state.llm_model or DEFAULT_MODEL,
        key="llm_model_input",
    ).strip() or DEFAULT_MODEL
    if st.session_state.llm_key_source == "Input in App":
        st.session_state.llm_api_key = st.text_input(
            "Groq API Key",
            value=st.session_state.llm_api_key,
            type="password",
            key="llm_api_key_input",
            help="Stored only in current Streamlit session.",
        ).strip()
        st.caption(
            "Key status: configured" if st.session_state.llm_api_key else "Key status: not set"
        )
    else:
        has_env_key = bool(str(os.getenv("GROQ_API_KEY", "")).strip())
        st.caption(f"Env key status: {'configured' if has_env_key else 'not set'}")

    st.markdown("### Diagram Type")
    diagram_type = st.selectbox("Type", DIAGRAM_KINDS, key="diagram_type")
    template_lookup = {tpl["name"]: tpl["description"] for tpl in list_instruction_templates()}
    for name, description in template_lookup.items():
        if name.lower().startswith(diagram_type.lower()):
            st.caption(description)

left, right = st.columns([2, 3])

with left:
    st.markdown("### Source Code")
    uploaded = st.file_uploader(
        "Load from file",
        type=sorted(ext.lstrip(".") for ext in SOURCE_LANGUAGES),
    )
    if uploaded is not None and st.button("Use uploaded file"):
        try:
            source = read_source_file(uploaded.name, uploaded.getvalue())
        except SourceFileError as exc:
            st.warning(str(exc))
        else:
            st.session_state.source_code = source.text
            st.caption(f"Loaded {source.filename} ({source.language}).")

    source_code = st.text_area(
        "Paste the code to diagram",
        key="source_code",
        height=420,
    )
    if st.button("Generate Diagram", type="primary"):
        if not source_code.strip():
            st.warning("Please paste or load a block of code to generate a diagram.")
        else:
            with st.spinner("Analyzing code with AI..."):
                run_generation(diagram_type, source_code)

    render_feedback(st.session_state.last_feedback)

with right:
    st.markdown("### Preview")
    mermaid_code = st.session_state.mermaid_code
    if not mermaid_code:
        st.info("Generate a diagram to see the preview.")
    else:
        code_type = st.session_state.mermaid_code_type
        export_name = get_export_filename(code_type, "mmd")
        render_mermaid_preview(mermaid_code, export_basename=export_name.rsplit(".", 1)[0])
        render_lint_findings(st.session_state.lint_findings)
        with st.expander("Mermaid Code", expanded=False):
            st.code(mermaid_code, language="text")
        st.download_button(
            "Download .mmd",
            data=mermaid_code,
            file_name=export_name,
            mime="text/plain",
        )
