"""Perplexity Visibility - Streamlit Dashboard Page."""

from typing import Any

import streamlit as st

from pages.common import render_visibility_tool


def _render_perplexity_result(result: dict[str, Any]) -> None:
    st.markdown(result.get("answer") or "No response received")
    citations = result.get("citations") or []
    if citations:
        st.markdown("**Sources**")
        for cite in citations:
            title = cite.get("title") or cite["url"]
            st.markdown(f"[{title}]({cite['url']})")
            if cite.get("text"):
                st.code(cite["text"], language=None)
    st.caption(f"Model: {result.get('model', 'n/a')}")


def render_perplexity_page() -> None:
    st.title("🤖 Perplexity Visibility")
    st.markdown("How does **Perplexity** answer questions about you, and which pages does it cite?")
    render_visibility_tool("perplexity", _render_perplexity_result)
