"""Copy Coach - Streamlit Dashboard Page.

Audits a local business homepage, shows the who/what/where and entity
scores, lists literal sentences ready to paste into the page, and offers a
Markdown download plus the audit history.
"""

import logging
import traceback
from typing import Any

import streamlit as st

from geocoach.errors import GeoCoachError
from geocoach.modules.copy_coach import repository
from geocoach.modules.copy_coach.exporter import export_filename, render_markdown
from pages.common import get_coach, run_async

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helper utilities
# ---------------------------------------------------------------------------

def _score_color(score: float) -> str:
    """Return CSS color string based on score threshold."""
    if score >= 70:
        return "green"
    if score >= 40:
        return "orange"
    return "red"


def _priority_badge(priority: int) -> str:
    colors = {1: "#ef4444", 2: "#f97316", 3: "#eab308", 4: "#3b82f6", 5: "#6b7280"}
    bg = colors.get(priority, "#6b7280")
    return (
        f'<span style="background:{bg};color:#fff;padding:2px 8px;'
        f'border-radius:4px;font-size:0.8em;font-weight:600;">'
        f'P{priority}</span>'
    )


def _render_audit(audit: dict[str, Any]) -> None:
    st.markdown(f"### {audit['url']}")
    cols = st.columns(4)
    for col, (label, key) in zip(cols, (
        ("Who", "score_who"), ("What", "score_what"),
        ("Where", "score_where"), ("Entity", "entity_score"),
    )):
        with col:
            score = audit[key]
            st.markdown(
                f"<div style='font-size:0.9em;opacity:0.7'>{label}</div>"
                f"<div style='font-size:2em;font-weight:700;color:{_score_color(score)}'>{score}</div>",
                unsafe_allow_html=True,
            )

    if audit.get("summary"):
        st.info(audit["summary"])

    st.markdown("#### ✍️ Recommended literal sentences")
    for rec in audit.get("recommendations", []):
        st.markdown(
            f"{_priority_badge(rec['priority'])} <code>{rec['kind']}</code>",
            unsafe_allow_html=True,
        )
        # st.code renders a copy button.
        st.code(rec["sentence"], language=None)

    issues = audit.get("issues") or []
    if issues:
        st.markdown("#### ⚠️ Issues")
        for issue in issues:
            st.markdown(f"- {issue}")

    st.download_button(
        "⬇️ Download Markdown",
        render_markdown(audit),
        file_name=export_filename(audit["id"]),
        mime="text/markdown",
        key=f"download_{audit['id']}",
    )


def _render_history() -> None:
    st.markdown("---")
    st.markdown("### 🕘 History")
    audits = repository.list_audits()
    if not audits:
        st.caption("No audits yet.")
        return
    for item in audits:
        left, mid, right = st.columns([5, 1, 1])
        with left:
            st.markdown(
                f"**{item['url']}** · who {item['score_who']} · what {item['score_what']} · "
                f"where {item['score_where']} · entity {item['entity_score']}  \n"
                f"<span style='opacity:0.6;font-size:0.8em'>{item['created_at']}</span>",
                unsafe_allow_html=True,
            )
        with mid:
            if st.button("Open", key=f"open_{item['id']}"):
                st.session_state.copy_coach_audit = repository.get_audit(item["id"])
                st.rerun()
        with right:
            if st.button("Delete", key=f"delete_{item['id']}"):
                repository.delete_audit(item["id"])
                current = st.session_state.get("copy_coach_audit")
                if current and current["id"] == item["id"]:
                    st.session_state.copy_coach_audit = None
                st.rerun()


# ---------------------------------------------------------------------------
# Main page entry point
# ---------------------------------------------------------------------------

def render_copy_coach_page() -> None:
    """Render the Copy Coach page."""
    st.title("✍️ Copy Coach")
    st.markdown("Score a homepage on **who / what / where** and get sentences AI answers can quote.")

    with st.form("copy_coach_form", clear_on_submit=False):
        url = st.text_input("Homepage URL *", placeholder="https://example-dental.com")
        submitted = st.form_submit_button("🔍 Run audit", use_container_width=True)

    if submitted:
        if not url.strip():
            st.error("❌ URL is required")
        else:
            try:
                with st.spinner("Fetching and analysing the page..."):
                    auditor = get_coach().get_auditor()
                    st.session_state.copy_coach_audit = run_async(auditor.run_audit(url.strip()))
                st.success("✅ Audit complete!")
            except GeoCoachError as exc:
                st.error(f"❌ {exc}")
            except Exception as exc:
                logger.error("Audit failed: %s", exc, exc_info=True)
                st.error(f"❌ Audit failed: {exc}")
                with st.expander("Error Details"):
                    st.code(traceback.format_exc())

    audit = st.session_state.get("copy_coach_audit")
    if audit:
        _render_audit(audit)

    _render_history()
