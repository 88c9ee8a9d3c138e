"""Client configuration, read from the environment.

Values come from process environment variables, optionally seeded
from a .env file via python-dotenv:

    DAO_RPC_URL                 RPC endpoint (required for the web3 backend)
    DAO_PRIVATE_KEY             hex signing key; absent means read-only
    DAO_CHAIN_ID                required network id (default: Sepolia)
    DAO_CONTRACT_ADDRESS        governance contract (also holds the treasury)
    DAO_NFT_CONTRACT_ADDRESS    membership NFT contract
    DAO_CONFIRMATION_TIMEOUT    seconds the web3 backend waits for a receipt
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv


SEPOLIA_CHAIN_ID = 11155111

NETWORK_NAMES: dict[int, str] = {
    1: "Ethereum Mainnet",
    5: "Goerli",
    SEPOLIA_CHAIN_ID: "Sepolia",
}


def network_name(chain_id: int) -> str:
    return NETWORK_NAMES.get(chain_id, f"chain {chain_id}")


@dataclass(frozen=True)
class ClientConfig:
    """Connection settings for one DAO deployment."""
    dao_address: str
    nft_address: str
    rpc_url: str = ""
    private_key: Optional[str] = None
    chain_id: int = SEPOLIA_CHAIN_ID
    confirmation_timeout: float = 300.0

    def __post_init__(self) -> None:
        if not self.dao_address:
            raise ValueError("DAO_CONTRACT_ADDRESS is required")
        if not self.nft_address:
            raise ValueError("DAO_NFT_CONTRACT_ADDRESS is required")
        if self.chain_id <= 0:
            raise ValueError(f"DAO_CHAIN_ID must be positive, got {self.chain_id}")
        if self.confirmation_timeout <= 0:
            raise ValueError("DAO_CONFIRMATION_TIMEOUT must be positive")

    @property
    def network_name(self) -> str:
        return network_name(self.chain_id)

    @property
    def has_signer(self) -> bool:
        return bool(self.private_key)

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ClientConfig":
        """Build a config from environment variables.

        Args:
            env_file: Optional .env file loaded before reading. Existing
                process variables take precedence over the file.
            environ: Mapping to read instead of os.environ (for testing).
                When given, no .env file is loaded.
        """
        if environ is None:
            load_dotenv(env_file)
            environ = os.environ

        raw_chain_id = environ.get("DAO_CHAIN_ID", str(SEPOLIA_CHAIN_ID))
        raw_timeout = environ.get("DAO_CONFIRMATION_TIMEOUT", "300")
        try:
            chain_id = int(raw_chain_id)
        except ValueError:
            raise ValueError(f"DAO_CHAIN_ID must be an integer, got {raw_chain_id!r}")
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise ValueError(
                f"DAO_CONFIRMATION_TIMEOUT must be a number, got {raw_timeout!r}"
            )

        return cls(
            dao_address=environ.get("DAO_CONTRACT_ADDRESS", ""),
            nft_address=environ.get("DAO_NFT_CONTRACT_ADDRESS", ""),
            rpc_url=environ.get("DAO_RPC_URL", ""),
            private_key=environ.get("DAO_PRIVATE_KEY") or None,
            chain_id=chain_id,
            confirmation_timeout=timeout,
        )
