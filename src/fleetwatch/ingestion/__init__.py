"""Ingestion layer.

This package contains the adapters that turn inbound realtime messages
into validated domain objects. Nothing here mutates state; the store
decides what to keep.
"""

__all__: list[str] = []
