"""Atelier - batch evaluation of LLM system prompts."""

__version__ = "0.1.0"
