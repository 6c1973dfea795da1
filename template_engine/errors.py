"""
Error types raised by the template engine.

Only structural failures surface as exceptions. Everything recoverable
(unknown identifier tokens, unresolved rule references, unresolvable
patches, images without markers) is reflected in the returned data instead.
"""

from dataclasses import dataclass
from typing import Optional


class TemplateEngineError(Exception):
    """Base class for template engine errors."""


@dataclass
class MalformedDocumentError(TemplateEngineError):
    """The markup could not be read as an SVG document tree.

    message: human readable reason
    original: the underlying parser exception, if any
    """

    message: str
    original: Optional[Exception] = None

    def __str__(self) -> str:
        if self.original is not None:
            return f"{self.message} ({self.original})"
        return self.message
