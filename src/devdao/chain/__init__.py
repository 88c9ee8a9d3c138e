"""Chain access — session lifecycle, capability ports and their bindings."""

from devdao.chain.session import (
    Capability,
    ChainReader,
    ChainSession,
    ChainWriter,
    SessionState,
)

__all__ = ["Capability", "ChainReader", "ChainSession", "ChainWriter", "SessionState"]
