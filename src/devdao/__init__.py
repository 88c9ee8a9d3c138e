"""devdao — governance client for an NFT-gated DAO.

Membership NFT holders read the proposal catalog, vote, and execute
proposals whose voting window has closed. All state is rebuilt from
chain reads; nothing is stored on the client.
"""

__version__ = "0.1.0"
