"""devdao CLI — command-line front-end for the governance client.

Usage:
    python -m devdao.cli status
    python -m devdao.cli proposals
    python -m devdao.cli create-proposal --token-id 7
    python -m devdao.cli vote --id 0 --choice yay
    python -m devdao.cli execute --id 0
    python -m devdao.cli --memory proposals      # seeded in-memory DAO

Connection settings come from the environment or a .env file
(see devdao.config). Each command opens a fresh session.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from web3 import Web3

from devdao.chain.memory import InMemoryAuthority, InMemoryWalletProvider
from devdao.chain.web3_adapter import Web3WalletProvider
from devdao.clock import ManualClock, utc_now
from devdao.config import SEPOLIA_CHAIN_ID, ClientConfig
from devdao.engine.action_gate import Action, ActionDecision
from devdao.models.proposal import Proposal, Vote
from devdao.service import DAOService, ServiceResult, View


DEMO_MEMBER = "0x000000000000000000000000000000000000bEEF"


def _demo_service() -> DAOService:
    """In-memory DAO with one proposal ready to execute and one open."""
    clock = ManualClock(utc_now())
    authority = InMemoryAuthority(clock=clock, treasury=Web3.to_wei(1, "ether"))
    authority.mint(DEMO_MEMBER, 2)
    authority.create_proposal(DEMO_MEMBER, 7).await_confirmation()
    authority.vote_on_proposal(DEMO_MEMBER, int(Vote.YAY), 0).await_confirmation()
    clock.advance(360)
    authority.create_proposal(DEMO_MEMBER, 11).await_confirmation()
    provider = InMemoryWalletProvider(authority, SEPOLIA_CHAIN_ID, address=DEMO_MEMBER)
    return DAOService(provider, SEPOLIA_CHAIN_ID, clock=clock)


def _confirm_signer(address: str) -> bool:
    answer = input(f"Sign transactions as {address}? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def _make_service(args: argparse.Namespace) -> DAOService:
    if args.memory:
        return _demo_service()
    config = ClientConfig.from_env(env_file=args.env_file)
    authorize = None if args.yes else _confirm_signer
    provider = Web3WalletProvider(config, authorize=authorize)
    return DAOService(provider, config.chain_id)


def _report(result: ServiceResult) -> int:
    if result.success:
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def _connect(args: argparse.Namespace) -> tuple[Optional[DAOService], int]:
    try:
        service = _make_service(args)
    except ValueError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return None, 1
    result = service.connect()
    if not result.success:
        return None, _report(result)
    return service, 0


def _format_actions(proposal: Proposal, decision: ActionDecision) -> str:
    if decision.allows(Action.EXECUTE):
        return f"execute ({proposal.projected_outcome.name})"
    if decision.legal_actions:
        return "vote yay | vote nay"
    return decision.description


def _print_proposal(proposal: Proposal, decision: ActionDecision) -> None:
    print(f"Proposal ID: {proposal.proposal_id}")
    print(f"  NFT to purchase: {proposal.target_token_id}")
    print(f"  Deadline:        {proposal.deadline.isoformat()}")
    print(f"  Yay votes:       {proposal.yay_votes}")
    print(f"  Nay votes:       {proposal.nay_votes}")
    print(f"  Executed:        {proposal.executed}")
    print(f"  Actions:         {_format_actions(proposal, decision)}")


def cmd_status(args: argparse.Namespace) -> int:
    service, code = _connect(args)
    if service is None:
        return code
    state = service.state()
    print(json.dumps({
        "address": state.address,
        "nft_balance": state.nft_balance,
        "treasury_eth": str(Web3.from_wei(state.treasury_balance, "ether")),
        "proposal_count": state.proposal_count,
    }, indent=2))
    return 0


def cmd_proposals(args: argparse.Namespace) -> int:
    service, code = _connect(args)
    if service is None:
        return code
    result = service.select_view(View.VIEW_PROPOSALS)
    if not result.success:
        return _report(result)
    if service.catalog.is_empty:
        print("No proposals have been created")
        return 0
    decisions = service.decisions()
    for proposal in service.catalog:
        _print_proposal(proposal, decisions[proposal.proposal_id])
    return 0


def cmd_create_proposal(args: argparse.Namespace) -> int:
    service, code = _connect(args)
    if service is None:
        return code
    service.select_view(View.CREATE_PROPOSAL)
    result = service.set_target_token_id(args.token_id)
    if result.success:
        result = service.create_proposal()
    if result.success:
        print(f"Created proposal (tx {result.data['tx_hash']}); "
              f"{service.state().proposal_count} proposals total")
    return _report(result)


def cmd_vote(args: argparse.Namespace) -> int:
    service, code = _connect(args)
    if service is None:
        return code
    result = service.select_view(View.VIEW_PROPOSALS)
    if result.success:
        result = service.vote(args.id, Vote.parse(args.choice))
    if result.success:
        print(f"Voted {args.choice.upper()} on proposal {args.id} (tx {result.data['tx_hash']})")
    return _report(result)


def cmd_execute(args: argparse.Namespace) -> int:
    service, code = _connect(args)
    if service is None:
        return code
    result = service.select_view(View.VIEW_PROPOSALS)
    if result.success:
        result = service.execute(args.id)
    if result.success:
        proposal = service.catalog.get(args.id)
        print(f"Executed proposal {args.id} (tx {result.data['tx_hash']}); "
              f"executed={proposal.executed if proposal else 'unknown'}")
    return _report(result)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devdao",
        description="Governance client for an NFT-gated DAO",
    )
    parser.add_argument("--env-file", type=Path, default=None,
                        help="Path to a .env file with DAO_* settings")
    parser.add_argument("--memory", action="store_true",
                        help="Run against a seeded in-memory DAO")
    parser.add_argument("--yes", action="store_true",
                        help="Do not ask before using the signing key")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show NFT balance, treasury and proposal count")
    sub.add_parser("proposals", help="List proposals and the actions open to you")

    p_create = sub.add_parser("create-proposal", help="Propose buying an NFT")
    p_create.add_argument("--token-id", type=int, required=True, help="NFT token id to purchase")

    p_vote = sub.add_parser("vote", help="Vote on a proposal")
    p_vote.add_argument("--id", type=int, required=True, help="Proposal ID")
    p_vote.add_argument("--choice", required=True, choices=["yay", "nay"])

    p_exec = sub.add_parser("execute", help="Execute a proposal after its deadline")
    p_exec.add_argument("--id", type=int, required=True, help="Proposal ID")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "proposals": cmd_proposals,
        "create-proposal": cmd_create_proposal,
        "vote": cmd_vote,
        "execute": cmd_execute,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
