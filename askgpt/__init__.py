"""
AskGPT — talk to an LLM about the book you're reading.

Highlight a passage, ask a question, keep the thread going. The core here
adapts a conversation to whichever OpenAI-style endpoint is configured,
pulls the reply back out of whatever shape the provider returns, and keeps
a short history of past conversations on disk.
"""

__version__ = "1.1.0"
