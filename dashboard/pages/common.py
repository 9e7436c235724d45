"""Helpers shared by the dashboard pages."""

import asyncio
import logging
from typing import Any, Callable

import streamlit as st

from geocoach.app import GeoCoach
from geocoach.errors import GeoCoachError

logger = logging.getLogger(__name__)


@st.cache_resource
def _load_coach() -> GeoCoach:
    """One initialised GeoCoach per Streamlit server process."""
    coach = GeoCoach()
    coach.initialize()
    return coach


def get_coach() -> GeoCoach:
    """Return the shared GeoCoach.

    A configuration error is shown as a banner and ends the current run.
    """
    try:
        return _load_coach()
    except GeoCoachError as exc:
        logger.error("Dashboard could not start: %s", exc)
        st.error(f"❌ {exc}")
        st.stop()


def run_async(coro):
    """Run a coroutine to completion on a private event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _session(provider: str):
    key = f"{provider}_visibility_session"
    if key not in st.session_state:
        st.session_state[key] = get_coach().visibility_session(provider)
    return st.session_state[key]


def render_visibility_tool(
    provider: str,
    render_result: Callable[[dict[str, Any]], None],
) -> None:
    """Subject input, query generation, and one card per query index.

    The session keeps at most one error; it is shown as a single banner
    that can be dismissed.
    """
    session = _session(provider)

    with st.form(f"{provider}_subject_form"):
        subject = st.text_input(
            "Person or business",
            value=session.subject,
            placeholder="Dr. Jane Smith, Denver dentist",
        )
        generate = st.form_submit_button("✨ Generate queries", use_container_width=True)

    if generate:
        if not subject.strip():
            session.error = "Search term is required"
        else:
            with st.spinner("Generating queries..."):
                run_async(session.generate_queries(subject.strip()))
                session.results = {}

    if session.error:
        left, right = st.columns([6, 1])
        with left:
            st.error(session.error)
        with right:
            if st.button("Dismiss", key=f"{provider}_dismiss"):
                session.dismiss_error()
                st.rerun()

    if not session.queries:
        return

    if st.button("🚀 Search all", key=f"{provider}_search_all", use_container_width=True):
        with st.spinner(f"Searching {len(session.queries)} queries..."):
            run_async(session.search_all())
        st.rerun()

    for index, query in enumerate(session.queries):
        with st.container(border=True):
            head, action = st.columns([6, 1])
            with head:
                st.markdown(f"**{index + 1}. {query}**")
            with action:
                if st.button("Search", key=f"{provider}_search_{index}"):
                    with st.spinner("Searching..."):
                        run_async(session.search_one(index))
                    st.rerun()

            result = session.results.get(index)
            if result is None:
                st.caption("Not searched yet.")
            elif "error" in result:
                st.warning(result["error"])
            else:
                render_result(result)
