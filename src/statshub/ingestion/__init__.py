"""Ingestion layer.

Defensive parsing of untrusted producer payloads.
"""

__all__: list[str] = []
