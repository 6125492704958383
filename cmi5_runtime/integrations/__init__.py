"""
External integrations for the cmi5 runtime.

Modules:
- lrs_client: httpx transport for the fetch URL and the LRS
"""
from .lrs_client import LrsClient

__all__ = ["LrsClient"]
