"""Tests for HTML sanitisation before model extraction."""

from geocoach.utils.text_processing import (
    MAX_HTML_CHARS,
    sanitize_html,
    strip_scripts_and_styles,
)
from geocoach.utils.validators import extract_domain, validate_url


class TestStripScriptsAndStyles:

    def test_removes_script_blocks_with_attributes(self):
        html = '<p>a</p><script type="text/javascript">var x = "<b>";</script><p>b</p>'
        assert strip_scripts_and_styles(html) == "<p>a</p><p>b</p>"

    def test_removes_style_blocks(self):
        html = "<style>\nbody { color: red; }\n</style><h1>Dentist</h1>"
        assert strip_scripts_and_styles(html) == "<h1>Dentist</h1>"

    def test_case_insensitive(self):
        html = "<SCRIPT>alert(1)</SCRIPT><Style>p{}</STYLE>ok"
        assert strip_scripts_and_styles(html) == "ok"

    def test_multiple_blocks_removed_non_greedily(self):
        html = "<script>1</script>keep<script>2</script>"
        assert strip_scripts_and_styles(html) == "keep"


class TestSanitizeHtml:

    def test_default_budget(self):
        assert MAX_HTML_CHARS == 120_000
        html = "x" * (MAX_HTML_CHARS + 500)
        assert len(sanitize_html(html)) == MAX_HTML_CHARS

    def test_truncates_after_stripping(self):
        html = "<script>" + "y" * 50 + "</script>" + "abcdef"
        assert sanitize_html(html, max_chars=4) == "abcd"

    def test_cut_may_land_mid_tag(self):
        assert sanitize_html("<div class='hero'>", max_chars=5) == "<div "

    def test_short_input_untouched(self):
        assert sanitize_html("<p>hi</p>") == "<p>hi</p>"


class TestValidators:

    def test_valid_https_url(self):
        assert validate_url("https://example-dental.com") == (True, "")

    def test_rejects_other_schemes(self):
        valid, message = validate_url("ftp://example.com")
        assert valid is False
        assert "scheme" in message

    def test_rejects_missing_host(self):
        valid, _ = validate_url("https://")
        assert valid is False

    def test_extract_domain(self):
        assert extract_domain("https://WWW.Example.com/about") == "www.example.com"
        assert extract_domain("example.com/path") == "example.com"
