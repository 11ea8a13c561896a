"""
Currency converter module.
Contains the rate provider and rate text parsing.
"""

from fxworker.converter.rates import extract_number, format_rate
from fxworker.converter.xe import XeRateProvider, parse_rate_html

__all__ = [
    "XeRateProvider",
    "parse_rate_html",
    "format_rate",
    "extract_number",
]
