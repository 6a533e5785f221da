"""Converters package: pluggable HTML to Markdown strategies."""

import logging

from .base_converter import BaseHtmlConverter, CallableConverter, as_converter
from .html_cleaner import HtmlCleaner
from .markdown_converter import MarkdownConverter

logger = logging.getLogger('epub2md.converters')


def default_converter(config=None, logger=None) -> MarkdownConverter:
    """
    Build the default markdownify-based converter.

    Args:
        config: Optional configuration dictionary for converter behavior
        logger: Optional logger instance (uses module logger if not provided)

    Example:
        >>> from converters import default_converter
        >>> default_converter().convert('<h1>Title</h1><p>Text</p>')
        '# Title\\n\\nText'
    """
    if logger is None:
        logger = logging.getLogger('epub2md.converters')
    return MarkdownConverter(logger=logger, config=config)


__all__ = [
    'default_converter',
    'BaseHtmlConverter',
    'CallableConverter',
    'as_converter',
    'MarkdownConverter',
    'HtmlCleaner'
]
