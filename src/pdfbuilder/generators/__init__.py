#!/usr/bin/env python3
"""
Document Generators
===================

Generators that lay out source content on a pdfbuilder Document.

Available generators:
- markdown: Markdown-flavoured text with headings, lists, links, images
  and an optional linked table of contents

Base Classes:
- BaseGenerator: Abstract interface for all generators
- ContentValidator: Validates source content before generation
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Tuple
import logging


class BaseGenerator(ABC):
    """Abstract base class for all document generators."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def generate(self, source: str, output_path: str, **kwargs) -> str:
        """Generate a PDF from source text.

        Args:
            source: Source text
            output_path: Path for output file
            **kwargs: Generator-specific options

        Returns:
            str: Path of the written file
        """
        pass

    @abstractmethod
    def validate_config(self) -> bool:
        """Validate generator configuration.

        Returns:
            bool: True if config is valid, False otherwise
        """
        pass

    def get_supported_formats(self) -> List[str]:
        """Return list of supported source formats."""
        return []


class ContentValidator:
    """Validates source content before generation."""

    @staticmethod
    def validate_source(source: str) -> Tuple[bool, List[str]]:
        """Validate source text.

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        if not source or not source.strip():
            return False, ["No source content provided"]

        errors = []
        if '\x00' in source:
            errors.append("Source contains NUL characters")

        return len(errors) == 0, errors


from .markdown_generator import MarkdownGenerator

__all__ = ['BaseGenerator', 'ContentValidator', 'MarkdownGenerator']
