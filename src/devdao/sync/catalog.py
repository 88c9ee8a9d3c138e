"""Catalog synchronizer — rebuilds the full proposal catalog on demand.

All-or-nothing: the catalog is assembled off to the side and only
replaces the previous one once every proposal has been read. A failed
read propagates and leaves the previous catalog in place. Concurrent
syncs are not merged; whichever completes last wins.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from devdao.clock import utc_now
from devdao.models.proposal import EMPTY_CATALOG, Catalog
from devdao.sync.reader import ProposalReader

logger = logging.getLogger(__name__)


class CatalogSynchronizer:

    def __init__(
        self,
        reader: ProposalReader,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._reader = reader
        self._clock = clock
        self._catalog = EMPTY_CATALOG

    @property
    def catalog(self) -> Catalog:
        """The last successfully synchronized catalog."""
        return self._catalog

    def sync_all(self, count: int) -> Catalog:
        """Read proposals 0..count-1 and replace the catalog.

        Raises:
            ValueError: negative count.
            ChainReadError / NotFound: any single read failed; the
                previous catalog is retained.
        """
        if count < 0:
            raise ValueError(f"Proposal count must be >= 0, got {count}")
        proposals = tuple(self._reader.read_proposal(i) for i in range(count))
        catalog = Catalog(proposals=proposals, synced_utc=self._clock())
        self._catalog = catalog
        logger.info("Catalog synchronized: %d proposals", count)
        return catalog
