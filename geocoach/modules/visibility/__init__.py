"""Visibility tools: query generation and fan-out over search providers."""

from geocoach.modules.visibility.fanout import VisibilitySession, fan_out
from geocoach.modules.visibility.query_generator import QueryGenerator

__all__ = [
    "VisibilitySession",
    "QueryGenerator",
    "fan_out",
]
