"""
Conversational layer.

This package contains:
- summarizer: language model client (system prompt, trimmed history)
- orchestrator: {message, history} -> {answer} / {error} request handling
"""
