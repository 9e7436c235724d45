"""GEO/AEO Copy Coach Dashboard

Main Streamlit application with sidebar navigation.
Run with: streamlit run dashboard/app.py
"""

import logging
import streamlit as st
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

logger = logging.getLogger(__name__)

# Page config
st.set_page_config(
    page_title="GEO Copy Coach",
    page_icon="🧭",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    [data-testid="stSidebar"] {
        background: linear-gradient(180deg, #0f172a 0%, #1e293b 100%);
    }
    [data-testid="stSidebar"] * {
        color: #e2e8f0 !important;
    }
    [data-testid="stSidebar"] .stButton > button {
        width: 100%;
        text-align: left;
        border-radius: 10px;
        border: none;
        background: transparent;
        margin-bottom: 4px;
    }
    [data-testid="stSidebar"] .stButton > button[kind="primary"] {
        background: rgba(59, 130, 246, 0.3) !important;
        border-left: 3px solid #3b82f6 !important;
    }
    .main .block-container { padding-top: 2rem; }
</style>
""", unsafe_allow_html=True)

PAGES = {
    "overview": ("🏠", "Overview"),
    "copy_coach": ("✍️", "Copy Coach"),
    "ai_overview": ("🔎", "AI Overview Visibility"),
    "perplexity": ("🤖", "Perplexity Visibility"),
}


def main():
    if "current_page" not in st.session_state:
        st.session_state.current_page = "overview"

    with st.sidebar:
        st.markdown("### 🧭 GEO Copy Coach")
        st.markdown("---")
        for page_id, (icon, label) in PAGES.items():
            is_active = st.session_state.current_page == page_id
            if st.button(
                f"{icon}  {label}",
                key=f"nav_{page_id}",
                type="primary" if is_active else "secondary",
                use_container_width=True,
            ):
                st.session_state.current_page = page_id
                st.rerun()

    page = st.session_state.current_page

    if page == "copy_coach":
        from pages.copy_coach import render_copy_coach_page
        render_copy_coach_page()
    elif page == "ai_overview":
        from pages.ai_overview import render_ai_overview_page
        render_ai_overview_page()
    elif page == "perplexity":
        from pages.perplexity_visibility import render_perplexity_page
        render_perplexity_page()
    else:
        render_overview()


def render_overview():
    """Provider status and the latest audits."""
    from pages.common import get_coach

    st.title("🏠 GEO/AEO Copy Coach")
    st.markdown(
        "Check how clearly a local business homepage answers **who**, **what** "
        "and **where**, and whether AI answer engines mention it."
    )

    try:
        coach = get_coach()
        status = coach.get_status()
    except Exception as exc:
        logger.error("Overview error: %s", exc)
        st.error(f"Could not start: {exc}")
        return

    missing = status["missing_secrets"]
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("LLM", "missing" if "OPENAI_API_KEY" in missing else "ready")
    with col2:
        st.metric("SerpAPI", "missing" if "SERPAPI_API_KEY" in missing else "ready")
    with col3:
        st.metric("Perplexity", "missing" if "PERPLEXITY_API_KEY" in missing else "ready")

    st.markdown("---")
    from geocoach.modules.copy_coach import repository
    audits = repository.list_audits(10)
    if audits:
        st.markdown("### Recent audits")
        st.dataframe(
            [
                {
                    "URL": a["url"],
                    "Who": a["score_who"],
                    "What": a["score_what"],
                    "Where": a["score_where"],
                    "Entity": a["entity_score"],
                    "Created": a["created_at"],
                }
                for a in audits
            ],
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.info("👋 **Getting Started:** open **✍️ Copy Coach** and audit a homepage.")


if __name__ == "__main__":
    main()
