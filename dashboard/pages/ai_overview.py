"""AI Overview Visibility - Streamlit Dashboard Page.

Generates realistic queries about a person or business and checks, through
SerpAPI, whether Google shows an AI overview for each of them. When there
is no overview the Google answer box is shown instead.
"""

from typing import Any

import streamlit as st

from pages.common import render_visibility_tool


def _render_metadata(meta: dict[str, Any]) -> None:
    parts = []
    if meta.get("total_results"):
        parts.append(f"~{meta['total_results']} results")
    if meta.get("time_taken"):
        parts.append(f"{meta['time_taken']}s")
    if parts:
        st.caption(" · ".join(parts))


def _render_block(block: dict[str, Any]) -> None:
    kind = block.get("type")
    if not kind:
        return
    if kind == "paragraph":
        st.markdown(block.get("snippet") or "No content available")
    elif kind == "heading":
        st.markdown(f"#### {block.get('snippet') or 'No heading available'}")
    elif kind == "list":
        items = block.get("list") or []
        if not items:
            st.caption("No list items available")
        for item in items:
            st.markdown(
                f"- **{item.get('title') or 'Item'}** "
                f"{item.get('snippet') or 'No description available'}"
            )
    else:
        st.caption(f"Unknown block type: {kind}")


def _render_overview(overview: dict[str, Any]) -> None:
    st.success("AI Overview present")
    if overview.get("thumbnail"):
        st.image(overview["thumbnail"], caption="AI Overview thumbnail")

    if overview.get("error"):
        st.error(f"AI Overview Error: {overview['error']}")
    elif overview.get("text_blocks"):
        for block in overview["text_blocks"]:
            _render_block(block)
    else:
        st.caption("No content available in AI Overview")

    references = overview.get("references") or []
    if references:
        with st.expander(f"References ({len(references)})"):
            for ref in references:
                st.markdown(f"[{ref.get('title') or ref.get('link')}]({ref.get('link')})")
                if ref.get("snippet"):
                    # st.code renders a copy button.
                    st.code(ref["snippet"], language=None)
                if ref.get("source"):
                    st.caption(ref["source"])


def _render_answer_box(answer_box: dict[str, Any]) -> None:
    if answer_box.get("description"):
        st.markdown(f"**{answer_box['description']}**")
    if answer_box.get("result"):
        st.markdown(f"### {answer_box['result']}")

    hours_list = answer_box.get("hours_list") or []
    if hours_list:
        st.markdown("#### Business Hours")
        for group in hours_list:
            if group.get("title"):
                st.caption(group["title"])
            st.dataframe(
                [{"Day": item.get("day"), "Hours": item.get("hours")} for item in group.get("items") or []],
                use_container_width=True,
                hide_index=True,
            )

    if answer_box.get("type") and answer_box["type"] != "hours":
        st.caption(f"Answer Box Type: {answer_box['type']}")


def _render_serp_result(result: dict[str, Any]) -> None:
    overview = result.get("ai_overview")
    answer_box = result.get("answer_box")
    if overview:
        _render_overview(overview)
        if answer_box:
            with st.expander("Google Answer Box"):
                _render_answer_box(answer_box)
    elif answer_box:
        st.info("No AI Overview. Google shows an answer box.")
        _render_answer_box(answer_box)
    else:
        st.info("No AI Overview or Answer Box found for this query.")

    _render_metadata(result.get("search_metadata") or {})


def render_ai_overview_page() -> None:
    """Render the AI Overview visibility page."""
    st.title("🔎 AI Overview Visibility")
    st.markdown("Does Google answer questions about you with an **AI Overview**?")
    render_visibility_tool("serp", _render_serp_result)
