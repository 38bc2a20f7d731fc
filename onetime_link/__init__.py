"""Single-use, time-limited links for verification flows."""

from onetime_link.services.links import LinkOptions, LinkService
from onetime_link.stores.base import LinkRecord, LinkStore

__all__ = ["LinkOptions", "LinkRecord", "LinkService", "LinkStore"]
