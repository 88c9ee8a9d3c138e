"""Tests for the web3 binding — proves calls, reverts and receipts map to client errors.

Uses hand-written stand-ins for the web3 objects; nothing touches a node.
"""

from types import SimpleNamespace
from typing import Any, Optional

import pytest
from web3.exceptions import ContractLogicError, TimeExhausted

from devdao.chain.web3_adapter import (
    Web3Contracts,
    Web3Handle,
    Web3PendingTransaction,
    Web3WalletProvider,
)
from devdao.config import ClientConfig
from devdao.errors import (
    AuthorityRejected,
    ConfirmationTimeout,
    ProviderUnavailable,
    SignerUnavailable,
)


DAO = "0x00000000000000000000000000000000000da0da"
NFT = "0x00000000000000000000000000000000000000ff"
SENDER = "0x00000000000000000000000000000000000000a1"
TX_HASH = b"\x12" * 32


class FakeCall:
    def __init__(self, name: str, args: tuple, contract: "FakeContract") -> None:
        self.name = name
        self.args = args
        self._contract = contract

    def call(self) -> Any:
        return self._contract.results[self.name]

    def build_transaction(self, params: dict) -> dict:
        if self._contract.build_error is not None:
            raise self._contract.build_error
        self._contract.built.append((self.name, self.args, params))
        return {"to": self._contract.address, **params}


class FakeFunctions:
    def __init__(self, contract: "FakeContract") -> None:
        self._contract = contract

    def __getattr__(self, name: str):
        return lambda *args: FakeCall(name, args, self._contract)


class FakeContract:
    def __init__(self, address: str) -> None:
        self.address = address
        self.results: dict[str, Any] = {}
        self.built: list[tuple] = []
        self.build_error: Optional[Exception] = None
        self.functions = FakeFunctions(self)


class FakeEth:
    def __init__(self) -> None:
        self.contracts: dict[str, FakeContract] = {}
        self.balances: dict[str, int] = {}
        self.sent: list[bytes] = []
        self.receipt: Optional[dict] = {"status": 1, "blockNumber": 10}
        self.call_error: Optional[Exception] = None
        self.receipt_error: Optional[Exception] = None
        self.nonce_error: Optional[Exception] = None
        self.chain_id = 11155111

    def contract(self, address: str, abi: list) -> FakeContract:
        return self.contracts.setdefault(address.lower(), FakeContract(address))

    def get_balance(self, address: str) -> int:
        return self.balances.get(address.lower(), 0)

    def get_transaction_count(self, address: str) -> int:
        if self.nonce_error is not None:
            raise self.nonce_error
        return 4

    def send_raw_transaction(self, raw: bytes) -> bytes:
        self.sent.append(raw)
        return TX_HASH

    def wait_for_transaction_receipt(self, tx_hash: bytes, timeout: float) -> dict:
        if self.receipt_error is not None:
            raise self.receipt_error
        if self.receipt is None:
            raise TimeExhausted(f"not in chain after {timeout} seconds")
        return self.receipt

    def get_transaction(self, tx_hash: bytes) -> dict:
        return {"from": SENDER, "to": DAO, "input": "0x"}

    def call(self, tx: dict, block: int) -> bytes:
        if self.call_error is not None:
            raise self.call_error
        return b""


class FakeAccount:
    address = SENDER

    def sign_transaction(self, tx: dict) -> SimpleNamespace:
        return SimpleNamespace(raw_transaction=b"signed")


@pytest.fixture
def w3() -> SimpleNamespace:
    return SimpleNamespace(eth=FakeEth())


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(dao_address=DAO, nft_address=NFT, confirmation_timeout=5)


def _contracts(w3: SimpleNamespace, config: ClientConfig, signer: bool = True) -> Web3Contracts:
    handle = Web3Handle(w3=w3, account=FakeAccount() if signer else None)
    return Web3Contracts(handle, config)


class TestReads:
    def test_proposal_record(self, w3, config) -> None:
        contracts = _contracts(w3, config)
        w3.eth.contracts[DAO].results["proposals"] = [7, 1700000000, 2, 1, False]
        assert contracts.proposal_by_id(0) == (7, 1700000000, 2, 1, False)

    def test_counts_and_balances(self, w3, config) -> None:
        contracts = _contracts(w3, config)
        w3.eth.contracts[DAO].results["numProposals"] = 3
        w3.eth.contracts[NFT].results["balanceOf"] = 2
        w3.eth.balances[DAO] = 10 ** 18
        assert contracts.proposal_count() == 3
        assert contracts.balance_of(SENDER) == 2
        assert contracts.treasury_balance() == 10 ** 18


class TestWrites:
    def test_vote_argument_order(self, w3, config) -> None:
        contracts = _contracts(w3, config)
        pending = contracts.vote_on_proposal(1, 5)
        name, args, params = w3.eth.contracts[DAO].built[0]
        assert name == "voteOnProposal"
        assert args == (5, 1)
        assert params["from"] == SENDER
        assert params["nonce"] == 4
        assert params["chainId"] == 11155111
        assert w3.eth.sent == [b"signed"]
        assert pending.tx_hash == "0x" + "12" * 32

    def test_revert_at_estimation(self, w3, config) -> None:
        contracts = _contracts(w3, config)
        w3.eth.contracts[DAO].build_error = ContractLogicError(
            "execution reverted: DEADLINE_EXCEEDED"
        )
        with pytest.raises(AuthorityRejected, match="DEADLINE_EXCEEDED"):
            contracts.execute_proposal(0)
        assert w3.eth.sent == []

    def test_node_refusal(self, w3, config) -> None:
        contracts = _contracts(w3, config)
        w3.eth.contracts[DAO].build_error = ValueError("insufficient funds for gas")
        with pytest.raises(AuthorityRejected, match="insufficient funds"):
            contracts.create_proposal(7)

    def test_transport_error_before_broadcast(self, w3, config) -> None:
        contracts = _contracts(w3, config)
        w3.eth.nonce_error = ConnectionError("connection refused")
        with pytest.raises(ProviderUnavailable, match="connection refused"):
            contracts.vote_on_proposal(0, 1)
        assert w3.eth.sent == []

    def test_read_only_cannot_write(self, w3, config) -> None:
        contracts = _contracts(w3, config, signer=False)
        with pytest.raises(SignerUnavailable):
            contracts.create_proposal(7)


class TestPendingTransaction:
    def test_confirmed(self, w3) -> None:
        Web3PendingTransaction(w3, TX_HASH, timeout=5).await_confirmation()

    def test_timeout(self, w3) -> None:
        w3.eth.receipt = None
        pending = Web3PendingTransaction(w3, TX_HASH, timeout=5)
        with pytest.raises(ConfirmationTimeout) as excinfo:
            pending.await_confirmation()
        assert excinfo.value.tx_hash == pending.tx_hash

    def test_connection_lost_while_waiting(self, w3) -> None:
        w3.eth.receipt_error = ConnectionError("connection reset by peer")
        pending = Web3PendingTransaction(w3, TX_HASH, timeout=5)
        with pytest.raises(ConfirmationTimeout) as excinfo:
            pending.await_confirmation()
        assert isinstance(excinfo.value.__cause__, ConnectionError)

    def test_reverted_receipt_recovers_reason(self, w3) -> None:
        w3.eth.receipt = {"status": 0, "blockNumber": 10}
        w3.eth.call_error = ContractLogicError("execution reverted: ALREADY_VOTED")
        pending = Web3PendingTransaction(w3, TX_HASH, timeout=5)
        with pytest.raises(AuthorityRejected, match="ALREADY_VOTED") as excinfo:
            pending.await_confirmation()
        assert excinfo.value.tx_hash == pending.tx_hash

    def test_reverted_receipt_without_reason(self, w3) -> None:
        w3.eth.receipt = {"status": 0, "blockNumber": 10}
        pending = Web3PendingTransaction(w3, TX_HASH, timeout=5)
        with pytest.raises(AuthorityRejected, match="reverted in block 10"):
            pending.await_confirmation()


class TestWalletProvider:
    def test_requires_rpc_url(self, config) -> None:
        with pytest.raises(ValueError, match="DAO_RPC_URL"):
            Web3WalletProvider(config)

    def test_network_and_address(self, w3, config) -> None:
        provider = Web3WalletProvider(
            ClientConfig(dao_address=DAO, nft_address=NFT, rpc_url="http://localhost:8545"),
        )
        handle = Web3Handle(w3=w3, account=FakeAccount())
        assert provider.get_network_id(handle) == 11155111
        assert provider.get_address(handle) == SENDER
        assert provider.get_address(Web3Handle(w3=w3)) is None
