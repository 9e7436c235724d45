"""Text processing utilities for page content sent to the model."""

import re

MAX_HTML_CHARS = 120_000

_SCRIPT_RE = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE)


def strip_scripts_and_styles(html: str) -> str:
    """Remove every ``<script>`` and ``<style>`` block, tags included."""
    return _STYLE_RE.sub("", _SCRIPT_RE.sub("", html))


def sanitize_html(html: str, max_chars: int = MAX_HTML_CHARS) -> str:
    """Strip script/style blocks, then hard-truncate to *max_chars*.

    This is a token-budget guard, not HTML parsing: the cut may land
    mid-tag or mid-word.

    Args:
        html: Raw page HTML.
        max_chars: Character budget applied after stripping.

    Returns:
        At most *max_chars* characters of stripped HTML.
    """
    return strip_scripts_and_styles(html)[:max_chars]
