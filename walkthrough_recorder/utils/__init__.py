"""Utility modules for the recording service.

Provides:
- Structured logging configuration
- Reusable prompt templates
"""

from .logging import configure_logging, get_logger, LogContext, log_operation
from .prompts import PromptTemplate, get_prompt, PROMPTS

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "LogContext",
    "log_operation",
    # Prompts
    "PromptTemplate",
    "get_prompt",
    "PROMPTS",
]
