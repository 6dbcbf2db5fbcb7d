"""
LedgerProxy - the stable identity callers talk to.

The proxy owns the LedgerState, points at one logic object, and runs
every call as a single atomic unit:

1. Checks: the logic validates the call against the current state and
   returns a Changeset. A LedgerError here leaves everything untouched.
2. Effects: the proxy commits the changeset and appends its events.
3. Interactions: event subscribers are notified, last, in sequence order.
   A subscriber error is logged and never turns a committed call into a
   failure.

Calls are serialized with a re-entrant lock, so concurrent callers see a
total order and a subscriber that calls back in observes committed state.

Usage:
    ledger = LedgerProxy()
    ledger.initialize(admin, minter)
    ledger.mint(minter, alice, 10_000)
    receipt = ledger.transfer(alice, bob, 1_000)  # bob receives 980
"""

from __future__ import annotations

import logging
import secrets
import threading
from collections import deque
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Deque, FrozenSet, List, Optional, Union

from .addresses import Address, normalize_address, require_uint256
from .errors import LedgerError
from .events import EventLog, LedgerEvent, LoggedEvent, Subscriber
from .logic import LedgerLogicV1, LogicParams, TransferReceipt, logic_for_version
from .observability import LedgerMetrics
from .roles import Role
from .storage import Changeset, LedgerState, load_snapshot, save_snapshot

if TYPE_CHECKING:
    from .config import LedgerConfig

logger = logging.getLogger(__name__)


def _random_proxy_address() -> Address:
    return "0x" + secrets.token_hex(20)


class LedgerProxy:
    """
    Upgradeable ledger.

    Invariants (verified after every commit when ``verify_invariants``):
    - sum(balances) == total_supply <= max_supply
    """

    def __init__(
        self,
        logic: Optional[LedgerLogicV1] = None,
        state: Optional[LedgerState] = None,
        event_log: Optional[EventLog] = None,
        metrics: Optional[LedgerMetrics] = None,
        address: Optional[Address] = None,
        verify_invariants: bool = True,
    ):
        self._logic = logic if logic is not None else LedgerLogicV1()
        self._state = state if state is not None else LedgerState()
        if self._state.layout != self._logic.layout:
            appended = self._state.migrate_to(self._logic.layout)
            logger.debug(f"State adopted layout v{self._logic.layout.version}, appended {[s.name for s in appended]}")
        self._events = event_log if event_log is not None else EventLog()
        self._metrics = metrics
        self.address = normalize_address(address, "address") if address else _random_proxy_address()
        self._verify_invariants = verify_invariants
        self._lock = threading.RLock()
        self._pending: Deque[LoggedEvent] = deque()
        self._delivering = False

    # -------------------------------------------------------------------------
    # Construction helpers
    # -------------------------------------------------------------------------

    @classmethod
    def from_config(cls, config: "LedgerConfig", **kwargs: Any) -> "LedgerProxy":
        """Fresh, uninitialized ledger using the configured logic version and token parameters."""
        params = LogicParams.from_config(config)
        if config.metrics.enabled and "metrics" not in kwargs:
            kwargs["metrics"] = LedgerMetrics(namespace=config.metrics.namespace)
        return cls(logic=logic_for_version(config.storage.logic_version, params), **kwargs)

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        params: Optional[LogicParams] = None,
        **kwargs: Any,
    ) -> Optional["LedgerProxy"]:
        """Reopen a snapshot with the logic version its layout was written by."""
        state = load_snapshot(path)
        if state is None:
            return None
        logic = logic_for_version(state.layout.version, params)
        return cls(logic=logic, state=state, **kwargs)

    def save(self, path: Union[str, Path]) -> None:
        with self._lock:
            save_snapshot(self._state, path)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def _execute(
        self,
        operation: str,
        build: Callable[[LedgerState], Changeset],
        before_commit: Optional[Callable[[], None]] = None,
    ) -> Any:
        with self._lock:
            try:
                changes = build(self._state)
            except LedgerError as exc:
                logger.warning(f"Ledger rejected {operation}: {exc.code}: {exc.message}")
                if self._metrics is not None:
                    self._metrics.record_rejection(exc.code)
                raise

            if before_commit is not None:
                before_commit()
            self._state.apply(changes)
            batch = self._events.append_batch(changes.events)
            self._after_commit(operation, batch)

            self._pending.extend(batch)
            self._deliver_pending()
            return changes.result

    def _deliver_pending(self) -> None:
        """Notify subscribers of queued entries in sequence order.

        Calls made from inside a subscriber only queue their entries; the
        outermost delivery loop picks them up after the entries before them.
        """
        if self._delivering:
            return
        self._delivering = True
        try:
            while self._pending:
                failures = self._events.notify([self._pending.popleft()])
                if failures and self._metrics is not None:
                    self._metrics.subscriber_errors_total.inc(failures)
        finally:
            self._delivering = False

    def _after_commit(self, operation: str, batch: List[LoggedEvent]) -> None:
        if self._verify_invariants:
            ok, failed = self._state.check_invariants()
            if not ok:
                raise RuntimeError(
                    f"Ledger invariant violation after {operation}: {failed}"
                )
        if self._metrics is not None:
            self._metrics.record_operation(operation)
            self._metrics.events_total.inc(len(batch))
            self._metrics.observe_supply(self._state.total_supply, self._state.total_burned)
        logger.debug(
            f"Committed {operation}",
            extra={"context": {
                "operation": operation,
                "events": [e.event.name for e in batch],
                "first_seq": batch[0].seq if batch else None,
                "total_supply": self._state.total_supply,
                "total_burned": self._state.total_burned,
            }},
        )

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    def initialize(self, admin: Address, minter: Address, initial_supply: int = 0) -> None:
        self._execute(
            "initialize",
            lambda state: self._logic.initialize(state, admin, minter, initial_supply),
        )
        logger.info(
            f"Ledger {self.address} initialized: logic v{self._logic.version}, "
            f"initial supply {self._state.total_supply}"
        )

    # -------------------------------------------------------------------------
    # Supply and transfers
    # -------------------------------------------------------------------------

    def mint(self, caller: Address, to: Address, amount: int) -> None:
        self._execute("mint", lambda state: self._logic.mint(state, caller, to, amount))

    def transfer(self, caller: Address, to: Address, amount: int) -> TransferReceipt:
        return self._execute("transfer", lambda state: self._logic.transfer(state, caller, to, amount))

    def transfer_from(self, caller: Address, owner: Address, to: Address, amount: int) -> TransferReceipt:
        return self._execute(
            "transfer_from",
            lambda state: self._logic.transfer_from(state, caller, owner, to, amount),
        )

    def approve(self, caller: Address, spender: Address, amount: int) -> None:
        self._execute("approve", lambda state: self._logic.approve(state, caller, spender, amount))

    def burn(self, caller: Address, amount: int) -> None:
        self._execute("burn", lambda state: self._logic.burn(state, caller, amount))

    def burn_from(self, caller: Address, owner: Address, amount: int) -> None:
        self._execute("burn_from", lambda state: self._logic.burn_from(state, caller, owner, amount))

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    def set_auto_burn_enabled(self, caller: Address, enabled: bool) -> None:
        self._execute(
            "set_auto_burn_enabled",
            lambda state: self._logic.set_auto_burn_enabled(state, caller, enabled),
        )

    def set_burn_exemption(self, caller: Address, account: Address, exempt: bool) -> None:
        self._execute(
            "set_burn_exemption",
            lambda state: self._logic.set_burn_exemption(state, caller, account, exempt),
        )

    def add_minter(self, caller: Address, account: Address) -> None:
        self._execute("add_minter", lambda state: self._logic.add_minter(state, caller, account))

    def remove_minter(self, caller: Address, account: Address) -> None:
        self._execute("remove_minter", lambda state: self._logic.remove_minter(state, caller, account))

    def grant_role(self, caller: Address, role: Union[Role, str], account: Address) -> None:
        self._execute("grant_role", lambda state: self._logic.grant_role(state, caller, role, account))

    def revoke_role(self, caller: Address, role: Union[Role, str], account: Address) -> None:
        self._execute("revoke_role", lambda state: self._logic.revoke_role(state, caller, role, account))

    def renounce_role(self, caller: Address, role: Union[Role, str]) -> None:
        self._execute("renounce_role", lambda state: self._logic.renounce_role(state, caller, role))

    def pause(self, caller: Address) -> None:
        self._execute("pause", lambda state: self._logic.pause(state, caller))

    def unpause(self, caller: Address) -> None:
        self._execute("unpause", lambda state: self._logic.unpause(state, caller))

    def set_bridge_address(self, caller: Address, bridge: Address) -> None:
        self._execute(
            "set_bridge_address",
            lambda state: self._logic.set_bridge_address(state, caller, bridge),
        )

    def upgrade_to(self, caller: Address, new_logic: LedgerLogicV1) -> None:
        """
        Swap the logic object. Storage is kept; slots appended by the new
        layout are created with their defaults.
        """
        with self._lock:
            old_logic = self._logic

            def _swap() -> None:
                self._state.migrate_to(new_logic.layout)
                self._logic = new_logic

            self._execute(
                "upgrade_to",
                lambda state: old_logic.authorize_upgrade(state, caller, new_logic),
                before_commit=_swap,
            )
            logger.info(
                f"Ledger {self.address} upgraded: {old_logic.implementation} v{old_logic.version} "
                f"-> {new_logic.implementation} v{new_logic.version}"
            )

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    @property
    def logic(self) -> LedgerLogicV1:
        return self._logic

    @property
    def implementation(self) -> str:
        return self._logic.implementation

    @property
    def implementation_version(self) -> int:
        return self._logic.version

    @property
    def event_log(self) -> EventLog:
        return self._events

    @property
    def metrics(self) -> Optional[LedgerMetrics]:
        return self._metrics

    @property
    def initialized(self) -> bool:
        return self._state.initialized

    @property
    def name(self) -> str:
        return self._state.name

    @property
    def symbol(self) -> str:
        return self._state.symbol

    @property
    def decimals(self) -> int:
        return self._state.decimals

    @property
    def total_supply(self) -> int:
        return self._state.total_supply

    @property
    def max_supply(self) -> int:
        return self._state.max_supply

    @property
    def total_burned(self) -> int:
        return self._state.total_burned

    @property
    def auto_burn_enabled(self) -> bool:
        return self._state.auto_burn_enabled

    @property
    def paused(self) -> bool:
        return self._state.paused

    def balance_of(self, account: Address) -> int:
        return self._state.balance_of(normalize_address(account, "account"))

    def allowance(self, owner: Address, spender: Address) -> int:
        return self._state.allowance(
            normalize_address(owner, "owner"),
            normalize_address(spender, "spender"),
        )

    def is_burn_exempt(self, account: Address) -> bool:
        return normalize_address(account, "account") in self._state.burn_exempt

    def has_role(self, role: Union[Role, str], account: Address) -> bool:
        return self._state.roles.has_role(Role.parse(role), normalize_address(account, "account"))

    def role_members(self, role: Union[Role, str]) -> FrozenSet[Address]:
        return self._state.roles.members(Role.parse(role))

    def is_minter(self, account: Address) -> bool:
        return self.has_role(Role.MINTER, account)

    def available_supply(self) -> int:
        return self._state.max_supply - self._state.total_supply

    def circulating_supply(self) -> int:
        # burned tokens already left total_supply
        return self._state.total_supply

    def calculate_burn_amount(self, amount: int) -> int:
        return self._logic.calculate_burn_amount(require_uint256(amount))

    def bridge_address(self) -> Address:
        return self._logic.bridge_address(self._state)

    def state_snapshot(self) -> LedgerState:
        """Detached copy of the current state."""
        with self._lock:
            return self._state.copy()

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        return self._events.subscribe(subscriber)

    def events(self) -> List[LedgerEvent]:
        return self._events.events()
