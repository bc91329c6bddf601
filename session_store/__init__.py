"""Session Store - concurrency-safe, pluggable session storage.

Sub-packages:
- core: configuration and exceptions
- observability: structured logging and metrics
- sessions: id generation, serialization, keyed mutexes, storage and the
  per-request Session handle
"""

__all__ = ["core", "observability", "sessions"]
