# Utilities module for GetStocks Relay
# Contains link validation and logging

from .validators import is_web_url, extract_links, extract_url_from_text
from .logging_config import configure_logging, get_logger, bind_context, clear_context

__all__ = [
    "is_web_url",
    "extract_links",
    "extract_url_from_text",
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
