"""compatchat: OpenAI-compatible chat-completion client."""

__version__ = "0.1.0"
