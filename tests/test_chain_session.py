"""Tests for the chain session — network validation and capability gating."""

import pytest

from devdao.chain.memory import InMemoryAuthority, InMemoryWalletProvider
from devdao.chain.session import Capability, ChainSession, SessionState
from devdao.config import SEPOLIA_CHAIN_ID
from devdao.errors import (
    NetworkMismatch,
    ProviderUnavailable,
    SessionInvalidated,
    SignerUnavailable,
    UserRejected,
)


MEMBER = "0x00000000000000000000000000000000000000a1"


@pytest.fixture
def authority() -> InMemoryAuthority:
    return InMemoryAuthority(treasury=5)


def _session(provider: InMemoryWalletProvider) -> ChainSession:
    return ChainSession(provider, SEPOLIA_CHAIN_ID)


class TestConnect:
    def test_connect_read_write(self, authority: InMemoryAuthority) -> None:
        session = _session(InMemoryWalletProvider(authority, address=MEMBER))
        assert session.state == SessionState.UNINITIALIZED
        session.connect()
        assert session.state == SessionState.CONNECTED
        assert session.capability == Capability.READ_WRITE
        assert session.address == MEMBER
        assert session.network_id == SEPOLIA_CHAIN_ID

    def test_connect_read_only(self, authority: InMemoryAuthority) -> None:
        session = _session(InMemoryWalletProvider(authority)).connect()
        assert session.capability == Capability.READ_ONLY

    def test_wrong_network_rejected(self, authority: InMemoryAuthority) -> None:
        session = _session(InMemoryWalletProvider(authority, chain_id=1, address=MEMBER))
        with pytest.raises(NetworkMismatch) as excinfo:
            session.connect()
        assert "Change the network to Sepolia" in str(excinfo.value)
        assert excinfo.value.actual == 1
        assert session.state == SessionState.INVALIDATED
        assert session.capability is None

    def test_user_rejected(self, authority: InMemoryAuthority) -> None:
        session = _session(InMemoryWalletProvider(authority, reject=True))
        with pytest.raises(UserRejected):
            session.connect()
        assert session.state == SessionState.INVALIDATED

    def test_provider_unavailable(self, authority: InMemoryAuthority) -> None:
        session = _session(InMemoryWalletProvider(authority, available=False))
        with pytest.raises(ProviderUnavailable):
            session.connect()

    def test_session_is_not_reusable(self, authority: InMemoryAuthority) -> None:
        session = _session(InMemoryWalletProvider(authority)).connect()
        session.disconnect()
        with pytest.raises(SessionInvalidated):
            session.connect()


class TestCapabilities:
    def test_reader_reads(self, authority: InMemoryAuthority) -> None:
        reader = _session(InMemoryWalletProvider(authority)).connect().as_reader()
        assert reader.treasury_balance() == 5
        assert reader.proposal_count() == 0

    def test_writer_requires_signer(self, authority: InMemoryAuthority) -> None:
        session = _session(InMemoryWalletProvider(authority)).connect()
        with pytest.raises(SignerUnavailable):
            session.as_writer()

    def test_writer_carries_address(self, authority: InMemoryAuthority) -> None:
        session = _session(InMemoryWalletProvider(authority, address=MEMBER)).connect()
        assert session.as_writer().address == MEMBER

    def test_handles_die_with_session(self, authority: InMemoryAuthority) -> None:
        session = _session(InMemoryWalletProvider(authority, address=MEMBER)).connect()
        reader = session.as_reader()
        writer = session.as_writer()
        session.disconnect()
        with pytest.raises(SessionInvalidated):
            reader.proposal_count()
        with pytest.raises(SessionInvalidated):
            writer.create_proposal(1)

    def test_no_handles_before_connect(self, authority: InMemoryAuthority) -> None:
        session = _session(InMemoryWalletProvider(authority))
        with pytest.raises(SessionInvalidated):
            session.as_reader()


class FlakyProvider(InMemoryWalletProvider):
    """Reaches the node but drops the connection on the network-id request."""

    def get_network_id(self, handle) -> int:
        raise ConnectionError("RPC down")


class TestTransportFailure:
    def test_transport_error_becomes_provider_unavailable(
        self, authority: InMemoryAuthority,
    ) -> None:
        session = _session(FlakyProvider(authority, address=MEMBER))
        with pytest.raises(ProviderUnavailable, match="RPC down") as excinfo:
            session.connect()
        assert isinstance(excinfo.value.__cause__, ConnectionError)
        assert session.state == SessionState.INVALIDATED
