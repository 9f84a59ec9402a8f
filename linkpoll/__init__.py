"""Linked no-copy byte buffers, stream adapters, epoll and socket helpers, and poller management."""

__version__ = "0.1.0"