"""GEO Copy Coach: local-SEO homepage audits and AI search visibility tools."""

__version__ = "1.0.0"
