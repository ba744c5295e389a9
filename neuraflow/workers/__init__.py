"""Example ServiceWorker implementations"""

from .llm import LLMWorker

__all__ = ["LLMWorker"]
