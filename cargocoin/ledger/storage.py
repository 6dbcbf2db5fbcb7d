"""
Ledger storage - the persistent half of the proxy/logic split.

Provides:
1. StorageLayout: ordered, typed slot list with an append-only
   compatibility check
2. LedgerState: the state struct every logic version operates on
3. Changeset: the writes and events produced by one logic call
4. JSON snapshots with a layout fingerprint

Design Principles:
- Logic never writes to LedgerState directly. It returns a Changeset and
  the proxy commits it with ``LedgerState.apply``.
- Existing slots are never reordered or retyped. A new logic version may
  only append slots, which are created with their declared default.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from .addresses import ZERO_ADDRESS, Address
from .errors import IncompatibleLayout
from .events import LedgerEvent
from .roles import Role, RoleRegistry

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT = "cargocoin-ledger-snapshot/1"


# =============================================================================
# Layout
# =============================================================================

@dataclass(frozen=True)
class Slot:
    """A named, typed storage slot."""
    name: str
    kind: str  # bool | int | str | address | balances | allowances | roles | address_set
    default: Any = None


@dataclass(frozen=True)
class StorageLayout:
    """Ordered slot list. Versions only ever append."""
    version: int
    slots: Tuple[Slot, ...]

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.slots)

    def signature(self) -> List[List[str]]:
        return [[s.name, s.kind] for s in self.slots]

    def fingerprint(self) -> str:
        payload = json.dumps(self.signature(), separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def check_extends(self, current: "StorageLayout") -> List[Slot]:
        """
        Verify this layout is an append-only extension of ``current``.

        Returns the appended slots.

        Raises:
            IncompatibleLayout: a slot was removed, reordered or retyped
        """
        if len(self.slots) < len(current.slots):
            raise IncompatibleLayout(
                f"layout v{self.version} drops slots of v{current.version}"
            )
        for index, (old, new) in enumerate(zip(current.slots, self.slots)):
            if old.name != new.name or old.kind != new.kind:
                raise IncompatibleLayout(
                    f"slot {index} changed from {old.name}:{old.kind} to {new.name}:{new.kind}"
                )
        return list(self.slots[len(current.slots):])


LAYOUT_V1 = StorageLayout(
    version=1,
    slots=(
        Slot("initialized", "bool", False),
        Slot("name", "str", ""),
        Slot("symbol", "str", ""),
        Slot("decimals", "int", 0),
        Slot("max_supply", "int", 0),
        Slot("total_supply", "int", 0),
        Slot("balances", "balances"),
        Slot("allowances", "allowances"),
        Slot("roles", "roles"),
        Slot("auto_burn_enabled", "bool", False),
        Slot("burn_exempt", "address_set"),
        Slot("total_burned", "int", 0),
        Slot("paused", "bool", False),
    ),
)

LAYOUT_V2 = StorageLayout(
    version=2,
    slots=LAYOUT_V1.slots + (Slot("bridge_address", "address", ZERO_ADDRESS),),
)

KNOWN_LAYOUTS: Dict[int, StorageLayout] = {1: LAYOUT_V1, 2: LAYOUT_V2}

# Slots with a dedicated LedgerState attribute; anything later lives in ``extension``.
_CORE_SLOTS = frozenset(LAYOUT_V1.names)


# =============================================================================
# Changeset
# =============================================================================

@dataclass
class Changeset:
    """
    Pending writes and events of one logic call.

    Reads through ``balance``/``allowance`` see pending writes first, so an
    operation touching the same account twice (self-transfer) composes.
    """
    balances: Dict[Address, int] = field(default_factory=dict)
    allowances: Dict[Tuple[Address, Address], int] = field(default_factory=dict)
    fields: Dict[str, Any] = field(default_factory=dict)
    burn_exempt: Dict[Address, bool] = field(default_factory=dict)
    role_grants: List[Tuple[Role, Address]] = field(default_factory=list)
    role_revokes: List[Tuple[Role, Address]] = field(default_factory=list)
    events: List[LedgerEvent] = field(default_factory=list)
    # Value handed back to the caller once committed (e.g. a TransferReceipt)
    result: Any = None

    def balance(self, state: "LedgerState", account: Address) -> int:
        if account in self.balances:
            return self.balances[account]
        return state.balance_of(account)

    def allowance(self, state: "LedgerState", owner: Address, spender: Address) -> int:
        key = (owner, spender)
        if key in self.allowances:
            return self.allowances[key]
        return state.allowance(owner, spender)

    def value(self, state: "LedgerState", name: str) -> Any:
        if name in self.fields:
            return self.fields[name]
        return state.slot(name)

    def emit(self, event: LedgerEvent) -> None:
        self.events.append(event)

    @property
    def is_empty(self) -> bool:
        return not (
            self.balances
            or self.allowances
            or self.fields
            or self.burn_exempt
            or self.role_grants
            or self.role_revokes
            or self.events
        )


# =============================================================================
# State
# =============================================================================

@dataclass
class LedgerState:
    """
    Persistent ledger state.

    Invariants (checked by ``check_invariants``):
    - sum(balances) == total_supply
    - total_supply <= max_supply
    - no negative balances or allowances
    """
    layout: StorageLayout = LAYOUT_V1
    initialized: bool = False
    name: str = ""
    symbol: str = ""
    decimals: int = 0
    max_supply: int = 0
    total_supply: int = 0
    balances: Dict[Address, int] = field(default_factory=dict)
    allowances: Dict[Address, Dict[Address, int]] = field(default_factory=dict)
    roles: RoleRegistry = field(default_factory=RoleRegistry)
    auto_burn_enabled: bool = False
    burn_exempt: Set[Address] = field(default_factory=set)
    total_burned: int = 0
    paused: bool = False
    extension: Dict[str, Any] = field(default_factory=dict)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def balance_of(self, account: Address) -> int:
        return self.balances.get(account, 0)

    def allowance(self, owner: Address, spender: Address) -> int:
        return self.allowances.get(owner, {}).get(spender, 0)

    def slot(self, name: str) -> Any:
        if name in _CORE_SLOTS:
            return getattr(self, name)
        if name not in self.layout.names:
            raise KeyError(f"slot {name!r} is not in layout v{self.layout.version}")
        return self.extension[name]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def apply(self, changes: Changeset) -> None:
        """Commit a changeset. Plain assignments only; validation happened upstream."""
        for account, amount in changes.balances.items():
            if amount:
                self.balances[account] = amount
            else:
                self.balances.pop(account, None)
        for (owner, spender), amount in changes.allowances.items():
            if amount:
                self.allowances.setdefault(owner, {})[spender] = amount
            else:
                spenders = self.allowances.get(owner)
                if spenders is not None:
                    spenders.pop(spender, None)
                    if not spenders:
                        del self.allowances[owner]
        for account, exempt in changes.burn_exempt.items():
            if exempt:
                self.burn_exempt.add(account)
            else:
                self.burn_exempt.discard(account)
        for role, account in changes.role_grants:
            self.roles.grant(role, account)
        for role, account in changes.role_revokes:
            self.roles.revoke(role, account)
        for name, value in changes.fields.items():
            if name in _CORE_SLOTS:
                setattr(self, name, value)
            else:
                self.extension[name] = value

    def migrate_to(self, layout: StorageLayout) -> List[Slot]:
        """Adopt ``layout``, creating appended slots with their defaults."""
        appended = layout.check_extends(self.layout)
        for slot in appended:
            self.extension[slot.name] = copy.deepcopy(slot.default)
        self.layout = layout
        return appended

    # -------------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------------

    def check_invariants(self) -> Tuple[bool, List[str]]:
        failed: List[str] = []
        if sum(self.balances.values()) != self.total_supply:
            failed.append("balances_sum_to_total_supply")
        if self.total_supply > self.max_supply:
            failed.append("total_supply_within_max_supply")
        if any(v < 0 for v in self.balances.values()):
            failed.append("balances_non_negative")
        if any(v < 0 for spenders in self.allowances.values() for v in spenders.values()):
            failed.append("allowances_non_negative")
        if self.total_burned < 0:
            failed.append("total_burned_non_negative")
        return (not failed), failed

    def copy(self) -> "LedgerState":
        return LedgerState(
            layout=self.layout,
            initialized=self.initialized,
            name=self.name,
            symbol=self.symbol,
            decimals=self.decimals,
            max_supply=self.max_supply,
            total_supply=self.total_supply,
            balances=dict(self.balances),
            allowances={owner: dict(spenders) for owner, spenders in self.allowances.items()},
            roles=self.roles.copy(),
            auto_burn_enabled=self.auto_burn_enabled,
            burn_exempt=set(self.burn_exempt),
            total_burned=self.total_burned,
            paused=self.paused,
            extension=copy.deepcopy(self.extension),
        )

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": SNAPSHOT_FORMAT,
            "layout": {
                "version": self.layout.version,
                "slots": self.layout.signature(),
                "fingerprint": self.layout.fingerprint(),
            },
            "state": {
                "initialized": self.initialized,
                "name": self.name,
                "symbol": self.symbol,
                "decimals": self.decimals,
                "max_supply": self.max_supply,
                "total_supply": self.total_supply,
                "balances": dict(sorted(self.balances.items())),
                "allowances": {
                    owner: dict(sorted(spenders.items()))
                    for owner, spenders in sorted(self.allowances.items())
                },
                "roles": self.roles.to_dict(),
                "auto_burn_enabled": self.auto_burn_enabled,
                "burn_exempt": sorted(self.burn_exempt),
                "total_burned": self.total_burned,
                "paused": self.paused,
                "extension": dict(self.extension),
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerState":
        if data.get("format") != SNAPSHOT_FORMAT:
            raise IncompatibleLayout(f"unknown snapshot format {data.get('format')!r}")

        layout_data = data["layout"]
        version = int(layout_data["version"])
        layout = KNOWN_LAYOUTS.get(version)
        if layout is None:
            raise IncompatibleLayout(f"unknown layout version {version}")
        if layout_data.get("fingerprint") != layout.fingerprint():
            raise IncompatibleLayout(f"fingerprint mismatch for layout v{version}")
        if layout_data.get("slots") != layout.signature():
            raise IncompatibleLayout(f"declared slots do not match layout v{version}")

        body = data["state"]
        state = cls(
            layout=layout,
            initialized=bool(body["initialized"]),
            name=body["name"],
            symbol=body["symbol"],
            decimals=int(body["decimals"]),
            max_supply=int(body["max_supply"]),
            total_supply=int(body["total_supply"]),
            balances={k: int(v) for k, v in body["balances"].items()},
            allowances={
                owner: {spender: int(v) for spender, v in spenders.items()}
                for owner, spenders in body["allowances"].items()
            },
            roles=RoleRegistry.from_dict(body["roles"]),
            auto_burn_enabled=bool(body["auto_burn_enabled"]),
            burn_exempt=set(body["burn_exempt"]),
            total_burned=int(body["total_burned"]),
            paused=bool(body["paused"]),
            extension=dict(body.get("extension", {})),
        )

        missing = [s.name for s in layout.slots if s.name not in _CORE_SLOTS and s.name not in state.extension]
        if missing:
            raise IncompatibleLayout(f"snapshot is missing slots {missing}")

        ok, failed = state.check_invariants()
        if not ok:
            raise IncompatibleLayout(f"snapshot violates invariants: {failed}")
        return state


# =============================================================================
# Snapshot files
# =============================================================================

def _atomic_write_text(path: Path, text: str) -> None:
    """Write temp file + fsync + rename, so a crash never leaves half a snapshot."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp.{os.getpid()}.{secrets.token_hex(8)}")
    try:
        with tmp_path.open("w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(str(tmp_path), str(path))
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def save_snapshot(state: LedgerState, path: Union[str, Path]) -> None:
    path = Path(path)
    _atomic_write_text(path, json.dumps(state.to_dict(), indent=2) + "\n")
    logger.debug(f"Snapshot written: {path} (layout v{state.layout.version})")


def load_snapshot(path: Union[str, Path]) -> Optional[LedgerState]:
    """Load a snapshot. Returns None if the file does not exist."""
    path = Path(path)
    if not path.exists():
        return None
    state = LedgerState.from_dict(json.loads(path.read_text(encoding="utf-8")))
    logger.debug(f"Snapshot loaded: {path} (layout v{state.layout.version})")
    return state
