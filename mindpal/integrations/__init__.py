"""Clients for third-party services used alongside the backend."""

from mindpal.integrations.services import ServiceClient

__all__ = ["ServiceClient"]
