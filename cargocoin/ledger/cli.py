"""Command line front end for a CargoCoin ledger kept in a JSON snapshot.

Each run reopens the snapshot, performs one operation as the ``--caller``
account, saves the snapshot and appends new events to a JSON Lines file.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence

from ..logging import configure_logging, load_logging_options_from_env
from .addresses import Address, address_from_label
from .config import LedgerConfig
from .errors import LedgerError
from .events import EventLog
from .logic import LogicParams, logic_for_version
from .proxy import LedgerProxy
from .roles import Role

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Argument parsing
# -----------------------------------------------------------------------------

def _amount(value: str) -> int:
    try:
        return int(value.replace("_", ""))
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer amount: {value}") from None


def _on_off(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"on", "true", "yes", "1"}:
        return True
    if lowered in {"off", "false", "no", "0"}:
        return False
    raise argparse.ArgumentTypeError(f"expected on/off, got {value}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cargocoin-ledger",
        description="CargoCoin ledger CLI (operates on a JSON snapshot file)",
    )
    parser.add_argument("--config", type=str, default=None, help="Config file (JSON, TOML or YAML)")
    parser.add_argument(
        "--state",
        type=str,
        default=None,
        help="Snapshot path (defaults to storage.snapshot_path)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at DEBUG")

    caller = argparse.ArgumentParser(add_help=False)
    caller.add_argument(
        "--caller",
        required=True,
        help="Calling account (address or label, e.g. 'alice')",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Create and initialize a ledger")
    init.add_argument("--admin", required=True)
    init.add_argument("--minter", required=True)
    init.add_argument("--initial-supply", type=_amount, default=0)
    init.add_argument("--logic-version", type=int, default=None)

    mint = sub.add_parser("mint", parents=[caller], help="Mint new tokens (MINTER)")
    mint.add_argument("to")
    mint.add_argument("amount", type=_amount)

    transfer = sub.add_parser("transfer", parents=[caller], help="Transfer with auto-burn")
    transfer.add_argument("to")
    transfer.add_argument("amount", type=_amount)

    approve = sub.add_parser("approve", parents=[caller], help="Set a spender allowance")
    approve.add_argument("spender")
    approve.add_argument("amount", type=_amount)

    transfer_from = sub.add_parser("transfer-from", parents=[caller], help="Spend an allowance")
    transfer_from.add_argument("owner")
    transfer_from.add_argument("to")
    transfer_from.add_argument("amount", type=_amount)

    burn = sub.add_parser("burn", parents=[caller], help="Burn own tokens")
    burn.add_argument("amount", type=_amount)

    burn_from = sub.add_parser("burn-from", parents=[caller], help="Burn via allowance")
    burn_from.add_argument("owner")
    burn_from.add_argument("amount", type=_amount)

    sub.add_parser("pause", parents=[caller], help="Pause transfers (PAUSER)")
    sub.add_parser("unpause", parents=[caller], help="Unpause transfers (PAUSER)")

    auto_burn = sub.add_parser("set-auto-burn", parents=[caller], help="Toggle auto-burn (ADMIN)")
    auto_burn.add_argument("enabled", type=_on_off)

    exempt = sub.add_parser("set-exempt", parents=[caller], help="Set burn exemption (ADMIN)")
    exempt.add_argument("account")
    exempt.add_argument("exempt", type=_on_off)

    add_minter = sub.add_parser("add-minter", parents=[caller], help="Grant MINTER (ADMIN)")
    add_minter.add_argument("account")

    remove_minter = sub.add_parser("remove-minter", parents=[caller], help="Revoke MINTER (ADMIN)")
    remove_minter.add_argument("account")

    upgrade = sub.add_parser("upgrade", parents=[caller], help="Swap logic version (UPGRADER)")
    upgrade.add_argument("version", type=int)

    balance = sub.add_parser("balance", help="Show an account balance")
    balance.add_argument("account")

    sub.add_parser("status", help="Show ledger status")

    events = sub.add_parser("events", help="Print logged events as JSON Lines")
    events.add_argument("--since", type=int, default=0)

    return parser


# -----------------------------------------------------------------------------
# Ledger file handling
# -----------------------------------------------------------------------------

def _addr(value: str) -> Address:
    return address_from_label(value)


def _configure_logging(config: LedgerConfig, verbose: bool) -> None:
    options = load_logging_options_from_env(config.logging.to_options())
    if verbose:
        options = replace(options, level="DEBUG")
    configure_logging(options)


def _open_ledger(config: LedgerConfig, state_path: Path, events_path: Path) -> LedgerProxy:
    """Reopen the snapshot, or a fresh uninitialized ledger if there is none."""
    logged = EventLog.read_jsonl(events_path)
    event_log = EventLog(start_seq=logged[-1].seq + 1 if logged else 0)
    ledger = LedgerProxy.load(state_path, params=LogicParams.from_config(config), event_log=event_log)
    if ledger is None:
        ledger = LedgerProxy.from_config(config, event_log=event_log)
    return ledger


def _commit(ledger: LedgerProxy, state_path: Path, events_path: Path) -> None:
    log = ledger.event_log
    first_seq = log.next_seq - len(log)
    ledger.save(state_path)
    written = log.append_jsonl(events_path, since=first_seq)
    logger.debug(f"Saved {state_path}, appended {written} events to {events_path}")


def _status(ledger: LedgerProxy) -> Dict[str, Any]:
    snapshot = ledger.state_snapshot()
    status: Dict[str, Any] = {
        "initialized": ledger.initialized,
        "name": ledger.name,
        "symbol": ledger.symbol,
        "decimals": ledger.decimals,
        "total_supply": ledger.total_supply,
        "max_supply": ledger.max_supply,
        "available_supply": ledger.available_supply(),
        "total_burned": ledger.total_burned,
        "auto_burn_enabled": ledger.auto_burn_enabled,
        "paused": ledger.paused,
        "implementation": ledger.implementation,
        "implementation_version": ledger.implementation_version,
        "roles": {role.value: sorted(ledger.role_members(role)) for role in Role},
        "burn_exempt": sorted(snapshot.burn_exempt),
    }
    if ledger.implementation_version >= 2:
        status["bridge_address"] = ledger.bridge_address()
    return status


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

def _mutation(args: argparse.Namespace, config: LedgerConfig) -> Callable[[LedgerProxy], Any]:
    caller = _addr(args.caller) if getattr(args, "caller", None) else None
    cmd = args.command
    if cmd == "init":
        return lambda ledger: ledger.initialize(_addr(args.admin), _addr(args.minter), args.initial_supply)
    if cmd == "mint":
        return lambda ledger: ledger.mint(caller, _addr(args.to), args.amount)
    if cmd == "transfer":
        return lambda ledger: ledger.transfer(caller, _addr(args.to), args.amount)
    if cmd == "approve":
        return lambda ledger: ledger.approve(caller, _addr(args.spender), args.amount)
    if cmd == "transfer-from":
        return lambda ledger: ledger.transfer_from(caller, _addr(args.owner), _addr(args.to), args.amount)
    if cmd == "burn":
        return lambda ledger: ledger.burn(caller, args.amount)
    if cmd == "burn-from":
        return lambda ledger: ledger.burn_from(caller, _addr(args.owner), args.amount)
    if cmd == "pause":
        return lambda ledger: ledger.pause(caller)
    if cmd == "unpause":
        return lambda ledger: ledger.unpause(caller)
    if cmd == "set-auto-burn":
        return lambda ledger: ledger.set_auto_burn_enabled(caller, args.enabled)
    if cmd == "set-exempt":
        return lambda ledger: ledger.set_burn_exemption(caller, _addr(args.account), args.exempt)
    if cmd == "add-minter":
        return lambda ledger: ledger.add_minter(caller, _addr(args.account))
    if cmd == "remove-minter":
        return lambda ledger: ledger.remove_minter(caller, _addr(args.account))
    if cmd == "upgrade":
        params = LogicParams.from_config(config)
        return lambda ledger: ledger.upgrade_to(caller, logic_for_version(args.version, params))
    raise ValueError(f"Unknown command: {cmd}")


def _run(args: argparse.Namespace) -> int:
    config = LedgerConfig.load(args.config)
    _configure_logging(config, args.verbose)

    state_path = Path(args.state or config.storage.snapshot_path)
    events_path = Path(config.storage.resolved_events_path(str(state_path)))

    if args.command == "init" and args.logic_version is not None:
        config.storage.logic_version = args.logic_version

    ledger = _open_ledger(config, state_path, events_path)

    if args.command == "balance":
        print(ledger.balance_of(_addr(args.account)))
        return 0
    if args.command == "status":
        print(json.dumps(_status(ledger), indent=2))
        return 0
    if args.command == "events":
        for entry in EventLog.read_jsonl(events_path):
            if entry.seq >= args.since:
                print(json.dumps(entry.to_dict()))
        return 0

    result = _mutation(args, config)(ledger)
    _commit(ledger, state_path, events_path)

    if result is not None:
        # transfer receipts
        print(json.dumps(asdict(result)))
    else:
        print("ok")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        return _run(args)
    except LedgerError as exc:
        print(f"error: {exc.code}: {exc.message}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
