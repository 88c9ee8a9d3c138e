"""Chain reads and catalog synchronization."""

from devdao.sync.catalog import CatalogSynchronizer
from devdao.sync.reader import ProposalReader

__all__ = ["CatalogSynchronizer", "ProposalReader"]
