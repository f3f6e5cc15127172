"""Prompt construction for analysis, curriculum and knowledge generation."""

from .builder import ANALYSIS_SYSTEM_PROMPT, CURRICULUM_SYSTEM_PROMPT, CodeExcerpt, PromptBuilder

__all__ = ["ANALYSIS_SYSTEM_PROMPT", "CURRICULUM_SYSTEM_PROMPT", "CodeExcerpt", "PromptBuilder"]
