"""
llmbridge - Unified LLM Streaming

Normalizes provider streams (OpenAI, Anthropic, Gemini, Ollama) into one
typed event vocabulary, rebuilds messages and responses from it, and
re-serializes it for HTTP clients as SSE or the data protocol.
"""

__version__ = "1.0.0"
__author__ = "llmbridge"
