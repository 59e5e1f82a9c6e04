"""LLM provider implementations."""

from .langchain_provider import LangChainAnalysisProvider

__all__ = ["LangChainAnalysisProvider"]
