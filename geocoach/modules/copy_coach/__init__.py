"""GEO/AEO homepage copy coach.

Scores a local business homepage on who/what/where clarity, stores the
audit with its quotable sentence recommendations, and exports it as
Markdown.
"""

from geocoach.modules.copy_coach.auditor import CopyCoachAuditor
from geocoach.modules.copy_coach.exporter import render_markdown

__all__ = [
    "CopyCoachAuditor",
    "render_markdown",
]
