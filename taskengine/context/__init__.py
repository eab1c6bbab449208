"""Prompt context management."""

from .compactor import CompactedContext, ContextCompactor, classify_structure, extract_raw_content

__all__ = ["CompactedContext", "ContextCompactor", "classify_structure", "extract_raw_content"]
