"""Core data models for the governance client."""

from devdao.models.proposal import EMPTY_CATALOG, Catalog, Proposal, Vote

__all__ = [
    "Catalog",
    "EMPTY_CATALOG",
    "Proposal",
    "Vote",
]
