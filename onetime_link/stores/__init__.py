"""Link store implementations."""

from onetime_link.stores.base import LinkRecord, LinkStore
from onetime_link.stores.memory import InMemoryLinkStore
from onetime_link.stores.sql import SqlAlchemyLinkStore

__all__ = ["InMemoryLinkStore", "LinkRecord", "LinkStore", "SqlAlchemyLinkStore"]
