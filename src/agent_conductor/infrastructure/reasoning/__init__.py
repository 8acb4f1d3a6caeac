from .errors import classify_llm_exception, llm_failure
from .llm_reasoning import LLMReasoningService, keyword_intent, render_history

__all__ = [
    "LLMReasoningService",
    "classify_llm_exception",
    "keyword_intent",
    "llm_failure",
    "render_history",
]
