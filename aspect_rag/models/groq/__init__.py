"""Groq text generation."""

from aspect_rag.models.groq.groq_llm import GroqLLM

__all__ = ["GroqLLM"]
