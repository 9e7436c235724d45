"""Markdown export of a stored audit."""

from typing import Any

TITLE = "# GEO/AEO Copy Coach"


def render_markdown(audit: dict[str, Any]) -> str:
    """Render *audit* (as returned by ``get_audit``) to Markdown.

    Output depends only on the stored audit, so exporting the same audit
    twice gives identical bytes.
    """
    lines = [
        TITLE,
        f"URL: {audit['url']}",
        (
            f"Scores — Who: {audit['score_who']} | What: {audit['score_what']} | "
            f"Where: {audit['score_where']} | Entity: {audit['entity_score']}"
        ),
        "",
        "## Recommended Literal Sentences",
    ]
    lines.extend(
        f"- [{r['kind']} • P{r['priority']}] {r['sentence']}"
        for r in audit.get("recommendations") or []
    )
    lines.extend(["", "## Issues"])
    lines.extend(f"- {issue}" for issue in audit.get("issues") or [])
    return "\n".join(lines)


def export_filename(audit_id: str) -> str:
    return f"audit-{audit_id}.md"
