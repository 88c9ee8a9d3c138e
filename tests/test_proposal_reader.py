"""Tests for the proposal reader — normalization and read-error wrapping."""

import pytest

from devdao.chain.memory import InMemoryAuthority, InMemoryWalletProvider
from devdao.chain.session import ChainSession
from devdao.clock import ManualClock
from devdao.config import SEPOLIA_CHAIN_ID
from devdao.errors import ChainReadError, NotFound
from devdao.models.proposal import Vote
from devdao.sync.reader import ProposalReader


MEMBER = "0x00000000000000000000000000000000000000a1"


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def authority(clock: ManualClock) -> InMemoryAuthority:
    authority = InMemoryAuthority(clock=clock, treasury=10 ** 18)
    authority.mint(MEMBER, 2)
    authority.create_proposal(MEMBER, 9).await_confirmation()
    return authority


@pytest.fixture
def reader(authority: InMemoryAuthority) -> ProposalReader:
    session = ChainSession(InMemoryWalletProvider(authority), SEPOLIA_CHAIN_ID).connect()
    return ProposalReader(session.as_reader())


class TestReadProposal:
    def test_reads_snapshot(self, reader: ProposalReader, clock: ManualClock) -> None:
        proposal = reader.read_proposal(0)
        assert proposal.proposal_id == 0
        assert proposal.target_token_id == 9
        assert proposal.yay_votes == 0
        assert proposal.executed is False
        assert proposal.deadline > clock.now()

    def test_refetch_is_identical(self, reader: ProposalReader) -> None:
        assert reader.read_proposal(0) == reader.read_proposal(0)

    def test_reflects_confirmed_vote(
        self, reader: ProposalReader, authority: InMemoryAuthority,
    ) -> None:
        authority.vote_on_proposal(MEMBER, int(Vote.NAY), 0).await_confirmation()
        assert reader.read_proposal(0).nay_votes == 2

    def test_missing_id(self, reader: ProposalReader) -> None:
        with pytest.raises(NotFound):
            reader.read_proposal(1)

    def test_negative_id(self, reader: ProposalReader) -> None:
        with pytest.raises(NotFound):
            reader.read_proposal(-1)

    def test_read_failure_wrapped(
        self, reader: ProposalReader, authority: InMemoryAuthority,
    ) -> None:
        authority.fail_reads({0})
        with pytest.raises(ChainReadError) as excinfo:
            reader.read_proposal(0)
        assert isinstance(excinfo.value.__cause__, ConnectionError)

    def test_retry_after_transient_failure(
        self, reader: ProposalReader, authority: InMemoryAuthority,
    ) -> None:
        authority.fail_reads()
        with pytest.raises(ChainReadError):
            reader.read_proposal(0)
        authority.heal()
        assert reader.read_proposal(0).target_token_id == 9


class TestBalances:
    def test_treasury(self, reader: ProposalReader) -> None:
        assert reader.read_treasury_balance() == 10 ** 18

    def test_caller_balance(self, reader: ProposalReader) -> None:
        assert reader.read_caller_balance(MEMBER) == 2

    def test_caller_balance_is_case_insensitive(self, reader: ProposalReader) -> None:
        assert reader.read_caller_balance(MEMBER.upper().replace("0X", "0x")) == 2

    def test_non_member_balance(self, reader: ProposalReader) -> None:
        assert reader.read_caller_balance("0x00000000000000000000000000000000000000b2") == 0

    def test_proposal_count(self, reader: ProposalReader) -> None:
        assert reader.read_proposal_count() == 1

    def test_count_failure_wrapped(
        self, reader: ProposalReader, authority: InMemoryAuthority,
    ) -> None:
        authority.fail_reads()
        with pytest.raises(ChainReadError):
            reader.read_proposal_count()
