"""Web3 binding of the chain ports.

Reads go through eth_call on the DAO and NFT contracts. Writes are
built from the contract function, signed locally with an eth_account
key and broadcast raw, the same way a hash anchor transaction is sent.
Gas estimation runs the call first, so most contract reverts surface
before anything is broadcast.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import HTTPProvider, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from devdao.abi import DAO_ABI, NFT_ABI
from devdao.config import ClientConfig
from devdao.errors import (
    AuthorityRejected,
    ConfirmationTimeout,
    ProviderUnavailable,
    SignerUnavailable,
    UserRejected,
)

logger = logging.getLogger(__name__)


def _revert_message(exc: Exception) -> str:
    message = getattr(exc, "message", None)
    return str(message or exc)


@dataclass(frozen=True)
class Web3Handle:
    """A live provider plus the optional signing account."""
    w3: Web3
    account: Optional[LocalAccount] = None


class Web3PendingTransaction:
    """Broadcast transaction awaiting its receipt."""

    def __init__(self, w3: Web3, tx_hash: bytes, timeout: float) -> None:
        self._w3 = w3
        self._raw_hash = tx_hash
        self._timeout = timeout
        self.tx_hash = Web3.to_hex(tx_hash)

    def await_confirmation(self) -> None:
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                self._raw_hash, timeout=self._timeout,
            )
        except TimeExhausted:
            raise ConfirmationTimeout(self.tx_hash)
        except (OSError, Web3Exception) as exc:
            # requests errors derive from OSError
            logger.warning("Lost the receipt wait for %s: %s", self.tx_hash, exc)
            raise ConfirmationTimeout(self.tx_hash) from exc

        if receipt["status"] != 1:
            reason = self._replay_revert_reason(receipt["blockNumber"])
            raise AuthorityRejected(reason, tx_hash=self.tx_hash)

    def _replay_revert_reason(self, block_number: int) -> str:
        """Re-run the reverted call against its block to recover the reason."""
        fallback = f"Transaction {self.tx_hash} reverted in block {block_number}"
        try:
            tx = self._w3.eth.get_transaction(self._raw_hash)
            self._w3.eth.call(
                {"from": tx["from"], "to": tx["to"], "data": tx["input"]},
                block_number,
            )
        except ContractLogicError as exc:
            return _revert_message(exc)
        except (OSError, Web3Exception) as exc:
            logger.warning("Could not replay %s: %s", self.tx_hash, exc)
        return fallback


class Web3Contracts:
    """AuthorityContracts backed by web3 contract objects."""

    def __init__(self, handle: Web3Handle, config: ClientConfig) -> None:
        self._w3 = handle.w3
        self._account = handle.account
        self._chain_id = config.chain_id
        self._timeout = config.confirmation_timeout
        self._dao = self._w3.eth.contract(
            address=Web3.to_checksum_address(config.dao_address), abi=DAO_ABI,
        )
        self._nft = self._w3.eth.contract(
            address=Web3.to_checksum_address(config.nft_address), abi=NFT_ABI,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def balance_of(self, address: str) -> int:
        return int(
            self._nft.functions.balanceOf(Web3.to_checksum_address(address)).call()
        )

    def account_balance(self, address: str) -> int:
        return int(self._w3.eth.get_balance(Web3.to_checksum_address(address)))

    def treasury_balance(self) -> int:
        return self.account_balance(self._dao.address)

    def proposal_count(self) -> int:
        return int(self._dao.functions.numProposals().call())

    def proposal_by_id(self, proposal_id: int) -> tuple:
        return tuple(self._dao.functions.proposals(proposal_id).call())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_proposal(self, token_id: int) -> Web3PendingTransaction:
        return self._send(self._dao.functions.createProposal(token_id))

    def vote_on_proposal(self, choice: int, proposal_id: int) -> Web3PendingTransaction:
        return self._send(self._dao.functions.voteOnProposal(proposal_id, int(choice)))

    def execute_proposal(self, proposal_id: int) -> Web3PendingTransaction:
        return self._send(self._dao.functions.executeProposal(proposal_id))

    def _send(self, call: Any) -> Web3PendingTransaction:
        if self._account is None:
            raise SignerUnavailable("No signing account configured")
        sender = self._account.address
        try:
            tx = call.build_transaction({
                "from": sender,
                "nonce": self._w3.eth.get_transaction_count(sender),
                "chainId": self._chain_id,
            })
            signed = self._account.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except OSError as exc:
            raise ProviderUnavailable(f"RPC request failed before broadcast: {exc}") from exc
        except (Web3Exception, ValueError) as exc:
            # Contract reverts and node refusals (insufficient funds,
            # nonce too low) alike.
            raise AuthorityRejected(_revert_message(exc))

        pending = Web3PendingTransaction(self._w3, tx_hash, self._timeout)
        logger.info("Broadcast %s from %s", pending.tx_hash, sender)
        return pending


class Web3WalletProvider:
    """WalletProvider for an HTTP RPC endpoint and an optional local key.

    Args:
        config: Connection settings.
        authorize: Called with the signing address before the key is used.
            Returning False rejects the connection with UserRejected.
    """

    def __init__(
        self,
        config: ClientConfig,
        authorize: Optional[Callable[[str], bool]] = None,
    ) -> None:
        if not config.rpc_url:
            raise ValueError("DAO_RPC_URL is required for the web3 backend")
        self._config = config
        self._authorize = authorize

    def connect(self) -> Web3Handle:
        w3 = Web3(HTTPProvider(self._config.rpc_url))
        if not w3.is_connected():
            raise ProviderUnavailable(f"Cannot reach RPC endpoint {self._config.rpc_url}")

        account: Optional[LocalAccount] = None
        if self._config.private_key:
            try:
                account = Account.from_key(self._config.private_key)
            except (ValueError, TypeError) as exc:
                raise SignerUnavailable(f"Invalid DAO_PRIVATE_KEY: {exc}")
            if self._authorize is not None and not self._authorize(account.address):
                raise UserRejected(f"Connection as {account.address} was declined")
        return Web3Handle(w3=w3, account=account)

    def get_network_id(self, handle: Web3Handle) -> int:
        return int(handle.w3.eth.chain_id)

    def get_address(self, handle: Web3Handle) -> Optional[str]:
        return handle.account.address if handle.account is not None else None

    def open_contracts(self, handle: Web3Handle) -> Web3Contracts:
        return Web3Contracts(handle, self._config)
