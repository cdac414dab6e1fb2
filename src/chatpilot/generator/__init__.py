"""Response generator module for chatpilot.

Provides a provider-agnostic interface for turning an incoming chat
message, the conversation history and the current screen text into a
reply.

Public API:
    ResponseGenerator -- Abstract base class
    OllamaGenerator -- Local Ollama server
    NebiusGenerator -- Nebius AI Studio (OpenAI-compatible)
"""

from chatpilot.generator.base import GeneratorError, ResponseGenerator

__all__ = ["ResponseGenerator", "GeneratorError", "OllamaGenerator", "NebiusGenerator"]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "OllamaGenerator":
        from chatpilot.generator.ollama import OllamaGenerator
        return OllamaGenerator
    if name == "NebiusGenerator":
        from chatpilot.generator.nebius import NebiusGenerator
        return NebiusGenerator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
