"""Abstract HTML to Markdown converter interface."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Union


class BaseHtmlConverter(ABC):
    """Abstract base class for HTML to Markdown conversion strategies."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize base converter with optional logger.

        Args:
            logger: Logger instance (optional, uses module logger if not provided)
        """
        self.logger = logger or logging.getLogger('epub2md.converters')

    @abstractmethod
    def convert(self, html: str) -> str:
        """
        Convert an HTML document to Markdown.

        Args:
            html: HTML or XHTML text of one section

        Returns:
            Markdown text
        """
        pass

    def __call__(self, html: str) -> str:
        return self.convert(html)


class CallableConverter(BaseHtmlConverter):
    """Adapter for a plain ``html -> markdown`` function."""

    def __init__(self, func: Callable[[str], str], logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self.func = func

    def convert(self, html: str) -> str:
        return self.func(html)


ConverterLike = Union[BaseHtmlConverter, Callable[[str], str]]


def as_converter(converter: Optional[ConverterLike]) -> Optional[BaseHtmlConverter]:
    """Wrap plain callables so every converter exposes ``convert``."""
    if converter is None or isinstance(converter, BaseHtmlConverter):
        return converter
    if callable(converter):
        return CallableConverter(converter)
    raise TypeError(f"Unsupported converter type: {type(converter).__name__}")


__all__ = ['BaseHtmlConverter', 'CallableConverter', 'ConverterLike', 'as_converter']
