"""
Command line administration of the vesting ledger.

Each command loads the ledger from the configured database, applies one
operation at the current time and saves the ledger again. The
check-eligibility command only queries the snapshot service.
"""

import argparse
import json
import logging
import time
from typing import Any, Dict, List, Optional

import requests

from epix_claim.vesting.allocations import (
    allocation_report,
    create_ledger,
    fund_ledger,
    load_allocations_file,
    load_into_ledger,
)
from epix_claim.vesting.config import load_vesting_config
from epix_claim.vesting.core.errors import ConfigurationError, VestingError
from epix_claim.vesting.core.units import format_epix, parse_epix
from epix_claim.vesting.snapshot_client import SnapshotClient, SnapshotServiceError
from epix_claim.vesting.store import LedgerStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Administer the EPIX vesting ledger")
    parser.add_argument("--config", help="Path to a vesting config file")
    parser.add_argument("--database-url", help="Override the configured database URL")
    parser.add_argument("--admin", help="Administrator address (defaults to the configured admin_address)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Create the ledger from an allocations file")
    init_parser.add_argument("allocations", help="Path to allocations.json")
    init_parser.add_argument("--vesting-period", type=int, help="Vesting period in seconds")

    load_parser = subparsers.add_parser("load-allocations", help="Add allocations that do not exist yet")
    load_parser.add_argument("allocations", help="Path to allocations.json")

    fund_parser = subparsers.add_parser("fund", help="Deposit into custody")
    fund_parser.add_argument("--amount", help="Amount in EPIX (defaults to the funding shortfall)")

    subparsers.add_parser("start", help="Start vesting now")
    subparsers.add_parser("unlock-bonus", help="Unlock the bizdev bonus")
    subparsers.add_parser("pause", help="Pause bizdev claiming")
    subparsers.add_parser("resume", help="Resume bizdev claiming")
    subparsers.add_parser("clawback-remaining", help="Claw back vested bizdev tokens")
    subparsers.add_parser("clawback-bonus", help="Claw back the bizdev bonus")

    claim_parser = subparsers.add_parser("claim", help="Claim vested tokens for an address")
    claim_parser.add_argument("address")

    bonus_parser = subparsers.add_parser("claim-bonus", help="Claim the bizdev bonus")
    bonus_parser.add_argument("address")

    status_parser = subparsers.add_parser("status", help="Show ledger status")
    status_parser.add_argument("--allocations", help="Report on the addresses of an allocations file")

    eligibility_parser = subparsers.add_parser(
        "check-eligibility", help="Ask the snapshot service whether an external address is eligible"
    )
    eligibility_parser.add_argument("address", help="External-chain address")

    return parser


def check_eligibility(config: Dict[str, Any], address: str) -> int:
    """Print the snapshot eligibility decision; exit code 0 only when eligible."""
    with SnapshotClient(config["snapshot_api_url"], timeout=config["snapshot_timeout"]) as client:
        decision = client.check_eligibility(address)
    print(json.dumps(decision._asdict(), indent=2))
    return 0 if decision.eligible else 1


def run(args: argparse.Namespace, now: int) -> int:
    override = {}
    if args.database_url:
        override["database_url"] = args.database_url
    if args.admin:
        override["admin_address"] = args.admin
    if args.command == "init" and args.vesting_period:
        override["vesting_period"] = args.vesting_period
    config = load_vesting_config(override, config_file=args.config)

    if args.command == "check-eligibility":
        return check_eligibility(config, args.address)

    admin = config["admin_address"]
    if not admin:
        raise ConfigurationError("No administrator address configured")

    store = LedgerStore(config["database_url"])
    store.initialize()
    try:
        if args.command == "init":
            if store.load() is not None:
                raise ConfigurationError("A vesting ledger already exists in this database")
            allocations_file = load_allocations_file(args.allocations)
            ledger = create_ledger(allocations_file, admin, config["vesting_period"])
            load_into_ledger(ledger, admin, allocations_file.allocations, config["batch_size"], now=now)
            store.save(ledger)
            logger.info(
                f"Ledger created with {len(ledger.allocations)} allocations, "
                f"{format_epix(ledger.required_funding())} EPIX required in custody"
            )
            return 0

        ledger = store.load()
        if ledger is None:
            raise ConfigurationError("No vesting ledger found, run 'init' first")

        if args.command == "load-allocations":
            allocations_file = load_allocations_file(args.allocations)
            result = load_into_ledger(ledger, admin, allocations_file.allocations, config["batch_size"], now=now)
            logger.info(f"{len(result.added)} allocations added, {len(result.failed)} rejected")
        elif args.command == "fund":
            amount = parse_epix(args.amount) if args.amount else None
            funded = fund_ledger(ledger, admin, config["max_deposit_chunk"], amount=amount, now=now)
            logger.info(f"Deposited {format_epix(funded)} EPIX, custody holds {format_epix(ledger.custody_balance)} EPIX")
        elif args.command == "start":
            ledger.start_vesting(admin, now)
        elif args.command == "unlock-bonus":
            ledger.unlock_bizdev_bonus(admin, now=now)
        elif args.command == "pause":
            ledger.pause_bizdev_claiming(admin, now=now)
        elif args.command == "resume":
            ledger.resume_bizdev_claiming(admin, now=now)
        elif args.command == "clawback-remaining":
            amount = ledger.claw_back_bizdev_remaining(admin, now)
            logger.info(f"Clawed back {format_epix(amount)} EPIX")
        elif args.command == "clawback-bonus":
            amount = ledger.claw_back_bizdev_bonus(admin, now=now)
            logger.info(f"Clawed back bonus of {format_epix(amount)} EPIX")
        elif args.command == "claim":
            amount = ledger.claim(args.address, now)
            logger.info(f"{args.address} claimed {format_epix(amount)} EPIX")
        elif args.command == "claim-bonus":
            amount = ledger.claim_bizdev_bonus(args.address, now=now)
            logger.info(f"{args.address} claimed bonus of {format_epix(amount)} EPIX")
        elif args.command == "status":
            if args.allocations:
                entries = load_allocations_file(args.allocations).allocations
            else:
                entries = []
            report = allocation_report(ledger, entries, now)
            report["global_stats"] = ledger.get_global_stats()._asdict()
            print(json.dumps(report, indent=2, default=str))
            return 0

        store.save(ledger)
        return 0
    finally:
        store.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        return run(args, int(time.time()))
    except (VestingError, SnapshotServiceError, requests.RequestException) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
