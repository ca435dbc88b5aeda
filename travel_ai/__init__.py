"""Travel AI: multi-provider chat orchestration with conversation memory."""

__version__ = "0.1.0"
