"""
Ledger logic - the executable half of the proxy/logic split.

A logic object is stateless. Each operation reads a LedgerState, runs its
guard clauses (initialized, role, pause, addresses, amounts, balances) and
returns a Changeset. Nothing is written until the proxy commits that
changeset, so a guard that raises leaves the ledger exactly as it was.

Versions:
- LedgerLogicV1: mint, transfer with auto-burn, allowances, burns, roles,
  pause, upgrade authorization
- LedgerLogicV2: V1 plus the L1 bridge address slot (appended to the
  storage layout)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple

from .addresses import (
    MAX_UINT256,
    ZERO_ADDRESS,
    Address,
    normalize_address,
    require_address,
    require_positive_amount,
    require_uint256,
)
from .errors import (
    AlreadyInitialized,
    EnforcedPause,
    ExceedsMaxSupply,
    ExpectedPause,
    InsufficientAllowance,
    InsufficientBalance,
    NotInitialized,
    Unauthorized,
    UnsupportedOperation,
)
from .events import (
    Approval,
    AutoBurn,
    AutoBurnStatusUpdated,
    BridgeAddressUpdated,
    BurnExemptionUpdated,
    Initialized,
    Minted,
    Paused,
    RoleGranted,
    RoleRevoked,
    Transfer,
    Unpaused,
    Upgraded,
)
from .roles import Role
from .storage import LAYOUT_V1, LAYOUT_V2, Changeset, LedgerState, StorageLayout

if TYPE_CHECKING:
    from .config import LedgerConfig


# =============================================================================
# Parameters
# =============================================================================

DECIMALS = 18
MAX_SUPPLY = 1_000_000_000 * 10**DECIMALS  # 1 billion CC
# Fixed fee schedule, not configurable
BURN_RATE_BASIS_POINTS = 200  # 2%
BASIS_POINTS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class LogicParams:
    """Token parameters a logic version is built with."""
    name: str = "CargoCoin"
    symbol: str = "CC"
    decimals: int = DECIMALS
    max_supply: int = MAX_SUPPLY
    auto_burn_enabled: bool = True
    # Gate mint/burn/burn_from on pause too, not only transfers
    strict_pause: bool = False

    def __post_init__(self) -> None:
        if not (0 < self.max_supply <= MAX_UINT256):
            raise ValueError("max_supply must be in (0, 2**256 - 1]")

    @classmethod
    def from_config(cls, config: "LedgerConfig") -> "LogicParams":
        return cls(
            name=config.token.name,
            symbol=config.token.symbol,
            decimals=config.token.decimals,
            max_supply=config.token.max_supply,
            auto_burn_enabled=config.burn.enabled_by_default,
            strict_pause=config.pause.strict,
        )


@dataclass(frozen=True)
class TransferReceipt:
    """Outcome of a committed transfer."""
    sender: Address
    recipient: Address
    amount: int
    net_amount: int
    burn_amount: int


# =============================================================================
# Version 1
# =============================================================================

class LedgerLogicV1:
    """
    Ledger logic, version 1.

    Every public operation takes the state first and the calling account
    second, and returns the Changeset the proxy should commit.
    """

    version: int = 1
    layout: StorageLayout = LAYOUT_V1

    def __init__(self, params: Optional[LogicParams] = None):
        self.params = params if params is not None else LogicParams()

    @property
    def implementation(self) -> str:
        cls = type(self)
        return f"{cls.__module__}.{cls.__qualname__}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(version={self.version}, params={self.params})"

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    def _require_initialized(self, state: LedgerState, operation: str) -> None:
        if not state.initialized:
            raise NotInitialized(operation)

    def _require_role(self, state: LedgerState, role: Role, caller: Address) -> None:
        if not state.roles.has_role(role, caller):
            raise Unauthorized(caller, role.value)

    def _require_not_paused(self, state: LedgerState, operation: str) -> None:
        if state.paused:
            raise EnforcedPause(operation)

    def _caller(self, caller: Address) -> Address:
        return require_address(caller, "caller")

    # -------------------------------------------------------------------------
    # Fee math
    # -------------------------------------------------------------------------

    def calculate_burn_amount(self, amount: int) -> int:
        """Fee preview: floor(amount * 200 / 10000), ignoring exemptions and the switch."""
        amount = require_uint256(amount)
        return amount * BURN_RATE_BASIS_POINTS // BASIS_POINTS_DENOMINATOR

    def quote_transfer(self, state: LedgerState, sender: Address, amount: int) -> Tuple[int, int]:
        """Return (burn_amount, net_amount) for a transfer from ``sender`` right now."""
        amount = require_uint256(amount)
        if state.auto_burn_enabled and sender not in state.burn_exempt:
            burn_amount = self.calculate_burn_amount(amount)
        else:
            burn_amount = 0
        return burn_amount, amount - burn_amount

    # -------------------------------------------------------------------------
    # Internal movements (build on a changeset, never touch state)
    # -------------------------------------------------------------------------

    def _move(
        self,
        state: LedgerState,
        changes: Changeset,
        sender: Address,
        recipient: Address,
        amount: int,
    ) -> TransferReceipt:
        burn_amount, net_amount = self.quote_transfer(state, sender, amount)

        sender_balance = changes.balance(state, sender)
        if sender_balance < amount:
            raise InsufficientBalance(sender, sender_balance, amount)

        changes.balances[sender] = sender_balance - amount
        # read after the debit so a self-transfer composes
        changes.balances[recipient] = changes.balance(state, recipient) + net_amount

        if burn_amount:
            changes.fields["total_supply"] = changes.value(state, "total_supply") - burn_amount
            changes.fields["total_burned"] = changes.value(state, "total_burned") + burn_amount

        changes.emit(Transfer(sender=sender, recipient=recipient, value=net_amount))
        if burn_amount:
            changes.emit(AutoBurn(sender=sender, recipient=recipient, amount=burn_amount))

        return TransferReceipt(
            sender=sender,
            recipient=recipient,
            amount=amount,
            net_amount=net_amount,
            burn_amount=burn_amount,
        )

    def _mint_to(self, state: LedgerState, changes: Changeset, to: Address, amount: int) -> None:
        total_supply = changes.value(state, "total_supply")
        if total_supply + amount > state.max_supply:
            raise ExceedsMaxSupply(amount, total_supply, state.max_supply)
        changes.balances[to] = changes.balance(state, to) + amount
        changes.fields["total_supply"] = total_supply + amount
        changes.emit(Transfer(sender=ZERO_ADDRESS, recipient=to, value=amount))
        changes.emit(Minted(to=to, amount=amount))

    def _burn_from_balance(self, state: LedgerState, changes: Changeset, owner: Address, amount: int) -> None:
        balance = changes.balance(state, owner)
        if balance < amount:
            raise InsufficientBalance(owner, balance, amount)
        changes.balances[owner] = balance - amount
        changes.fields["total_supply"] = changes.value(state, "total_supply") - amount
        changes.fields["total_burned"] = changes.value(state, "total_burned") + amount
        changes.emit(Transfer(sender=owner, recipient=ZERO_ADDRESS, value=amount))

    def _spend_allowance(
        self,
        state: LedgerState,
        changes: Changeset,
        owner: Address,
        spender: Address,
        amount: int,
    ) -> None:
        current = changes.allowance(state, owner, spender)
        if current == MAX_UINT256:
            return
        if current < amount:
            raise InsufficientAllowance(spender, current, amount)
        changes.allowances[(owner, spender)] = current - amount

    def _grant(self, state: LedgerState, changes: Changeset, role: Role, account: Address, sender: Address) -> None:
        if state.roles.has_role(role, account) or (role, account) in changes.role_grants:
            return
        changes.role_grants.append((role, account))
        changes.emit(RoleGranted(role=role.value, account=account, sender=sender))

    def _revoke(self, state: LedgerState, changes: Changeset, role: Role, account: Address, sender: Address) -> None:
        if not state.roles.has_role(role, account):
            return
        changes.role_revokes.append((role, account))
        changes.emit(RoleRevoked(role=role.value, account=account, sender=sender))

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    def initialize(
        self,
        state: LedgerState,
        admin: Address,
        minter: Address,
        initial_supply: int = 0,
    ) -> Changeset:
        """
        One-time setup behind the proxy.

        Postconditions:
        - admin holds ADMIN, PAUSER and UPGRADER; minter holds MINTER
        - auto-burn is on unless params.auto_burn_enabled is False
        - initial_supply (if any) is minted to admin
        """
        if state.initialized:
            raise AlreadyInitialized()
        admin = require_address(admin, "admin")
        minter = require_address(minter, "minter")
        initial_supply = require_uint256(initial_supply, "initial_supply")

        changes = Changeset()
        changes.fields.update(
            initialized=True,
            name=self.params.name,
            symbol=self.params.symbol,
            decimals=self.params.decimals,
            max_supply=self.params.max_supply,
            auto_burn_enabled=self.params.auto_burn_enabled,
        )
        for role in (Role.ADMIN, Role.PAUSER, Role.UPGRADER):
            self._grant(state, changes, role, admin, admin)
        self._grant(state, changes, Role.MINTER, minter, admin)

        if initial_supply > self.params.max_supply:
            raise ExceedsMaxSupply(initial_supply, 0, self.params.max_supply)
        if initial_supply:
            changes.balances[admin] = initial_supply
            changes.fields["total_supply"] = initial_supply
            changes.emit(Transfer(sender=ZERO_ADDRESS, recipient=admin, value=initial_supply))
            changes.emit(Minted(to=admin, amount=initial_supply))

        changes.emit(Initialized(version=self.version))
        return changes

    # -------------------------------------------------------------------------
    # Supply
    # -------------------------------------------------------------------------

    def mint(self, state: LedgerState, caller: Address, to: Address, amount: int) -> Changeset:
        self._require_initialized(state, "mint")
        caller = self._caller(caller)
        self._require_role(state, Role.MINTER, caller)
        to = require_address(to, "to")
        amount = require_positive_amount(amount)
        if self.params.strict_pause:
            self._require_not_paused(state, "mint")

        changes = Changeset()
        self._mint_to(state, changes, to, amount)
        return changes

    def burn(self, state: LedgerState, caller: Address, amount: int) -> Changeset:
        self._require_initialized(state, "burn")
        caller = self._caller(caller)
        amount = require_uint256(amount)
        if self.params.strict_pause:
            self._require_not_paused(state, "burn")

        changes = Changeset()
        self._burn_from_balance(state, changes, caller, amount)
        return changes

    def burn_from(self, state: LedgerState, caller: Address, owner: Address, amount: int) -> Changeset:
        self._require_initialized(state, "burn_from")
        caller = self._caller(caller)
        owner = require_address(owner, "owner")
        amount = require_uint256(amount)
        if self.params.strict_pause:
            self._require_not_paused(state, "burn_from")

        changes = Changeset()
        self._spend_allowance(state, changes, owner, caller, amount)
        self._burn_from_balance(state, changes, owner, amount)
        return changes

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    def transfer(self, state: LedgerState, caller: Address, to: Address, amount: int) -> Changeset:
        self._require_initialized(state, "transfer")
        self._require_not_paused(state, "transfer")
        caller = self._caller(caller)
        to = require_address(to, "to")
        amount = require_uint256(amount)

        changes = Changeset()
        changes.result = self._move(state, changes, caller, to, amount)
        return changes

    def transfer_from(
        self,
        state: LedgerState,
        caller: Address,
        owner: Address,
        to: Address,
        amount: int,
    ) -> Changeset:
        self._require_initialized(state, "transfer_from")
        self._require_not_paused(state, "transfer_from")
        caller = self._caller(caller)
        owner = require_address(owner, "owner")
        to = require_address(to, "to")
        amount = require_uint256(amount)

        changes = Changeset()
        self._spend_allowance(state, changes, owner, caller, amount)
        changes.result = self._move(state, changes, owner, to, amount)
        return changes

    def approve(self, state: LedgerState, caller: Address, spender: Address, amount: int) -> Changeset:
        self._require_initialized(state, "approve")
        caller = self._caller(caller)
        spender = require_address(spender, "spender")
        amount = require_uint256(amount)

        changes = Changeset()
        changes.allowances[(caller, spender)] = amount
        changes.emit(Approval(owner=caller, spender=spender, value=amount))
        return changes

    # -------------------------------------------------------------------------
    # Burn configuration
    # -------------------------------------------------------------------------

    def set_auto_burn_enabled(self, state: LedgerState, caller: Address, enabled: bool) -> Changeset:
        self._require_initialized(state, "set_auto_burn_enabled")
        caller = self._caller(caller)
        self._require_role(state, Role.ADMIN, caller)

        changes = Changeset()
        if state.auto_burn_enabled != bool(enabled):
            changes.fields["auto_burn_enabled"] = bool(enabled)
        # emitted even when the value is unchanged
        changes.emit(AutoBurnStatusUpdated(enabled=bool(enabled)))
        return changes

    def set_burn_exemption(self, state: LedgerState, caller: Address, account: Address, exempt: bool) -> Changeset:
        self._require_initialized(state, "set_burn_exemption")
        caller = self._caller(caller)
        self._require_role(state, Role.ADMIN, caller)
        account = require_address(account, "account")

        changes = Changeset()
        if (account in state.burn_exempt) != bool(exempt):
            changes.burn_exempt[account] = bool(exempt)
        changes.emit(BurnExemptionUpdated(account=account, exempt=bool(exempt)))
        return changes

    # -------------------------------------------------------------------------
    # Roles
    # -------------------------------------------------------------------------

    def grant_role(self, state: LedgerState, caller: Address, role: Role, account: Address) -> Changeset:
        self._require_initialized(state, "grant_role")
        caller = self._caller(caller)
        role = Role.parse(role)
        self._require_role(state, Role.ADMIN, caller)
        account = require_address(account, "account")

        changes = Changeset()
        self._grant(state, changes, role, account, caller)
        return changes

    def revoke_role(self, state: LedgerState, caller: Address, role: Role, account: Address) -> Changeset:
        self._require_initialized(state, "revoke_role")
        caller = self._caller(caller)
        role = Role.parse(role)
        self._require_role(state, Role.ADMIN, caller)
        account = normalize_address(account, "account")

        changes = Changeset()
        self._revoke(state, changes, role, account, caller)
        return changes

    def renounce_role(self, state: LedgerState, caller: Address, role: Role) -> Changeset:
        self._require_initialized(state, "renounce_role")
        caller = self._caller(caller)
        role = Role.parse(role)

        changes = Changeset()
        self._revoke(state, changes, role, caller, caller)
        return changes

    def add_minter(self, state: LedgerState, caller: Address, account: Address) -> Changeset:
        return self.grant_role(state, caller, Role.MINTER, account)

    def remove_minter(self, state: LedgerState, caller: Address, account: Address) -> Changeset:
        return self.revoke_role(state, caller, Role.MINTER, account)

    # -------------------------------------------------------------------------
    # Circuit breaker
    # -------------------------------------------------------------------------

    def pause(self, state: LedgerState, caller: Address) -> Changeset:
        self._require_initialized(state, "pause")
        caller = self._caller(caller)
        self._require_role(state, Role.PAUSER, caller)
        if state.paused:
            raise EnforcedPause("pause")

        changes = Changeset()
        changes.fields["paused"] = True
        changes.emit(Paused(account=caller))
        return changes

    def unpause(self, state: LedgerState, caller: Address) -> Changeset:
        self._require_initialized(state, "unpause")
        caller = self._caller(caller)
        self._require_role(state, Role.PAUSER, caller)
        if not state.paused:
            raise ExpectedPause()

        changes = Changeset()
        changes.fields["paused"] = False
        changes.emit(Unpaused(account=caller))
        return changes

    # -------------------------------------------------------------------------
    # Upgrades
    # -------------------------------------------------------------------------

    def authorize_upgrade(self, state: LedgerState, caller: Address, new_logic: "LedgerLogicV1") -> Changeset:
        """
        Authorize swapping to ``new_logic``. The current logic decides, so a
        version can never be replaced by something it does not accept.

        Raises:
            Unauthorized: caller lacks UPGRADER
            IncompatibleLayout: new layout is not an append-only extension
        """
        self._require_initialized(state, "upgrade_to")
        caller = self._caller(caller)
        self._require_role(state, Role.UPGRADER, caller)
        new_logic.layout.check_extends(state.layout)

        changes = Changeset()
        changes.emit(Upgraded(implementation=new_logic.implementation, version=new_logic.version))
        return changes

    # -------------------------------------------------------------------------
    # Later-version operations
    # -------------------------------------------------------------------------

    def set_bridge_address(self, state: LedgerState, caller: Address, bridge: Address) -> Changeset:
        raise UnsupportedOperation("set_bridge_address", self.version)

    def bridge_address(self, state: LedgerState) -> Address:
        raise UnsupportedOperation("bridge_address", self.version)


# =============================================================================
# Version 2
# =============================================================================

class LedgerLogicV2(LedgerLogicV1):
    """V1 plus the bridge address used by the L1 deployment."""

    version = 2
    layout = LAYOUT_V2

    def set_bridge_address(self, state: LedgerState, caller: Address, bridge: Address) -> Changeset:
        self._require_initialized(state, "set_bridge_address")
        caller = self._caller(caller)
        self._require_role(state, Role.ADMIN, caller)
        bridge = require_address(bridge, "bridge")

        changes = Changeset()
        changes.fields["bridge_address"] = bridge
        changes.emit(BridgeAddressUpdated(bridge=bridge))
        return changes

    def bridge_address(self, state: LedgerState) -> Address:
        return state.slot("bridge_address")


LOGIC_VERSIONS = {1: LedgerLogicV1, 2: LedgerLogicV2}


def logic_for_version(version: int, params: Optional[LogicParams] = None) -> LedgerLogicV1:
    try:
        return LOGIC_VERSIONS[version](params)
    except KeyError:
        raise ValueError(f"Unknown logic version: {version}") from None
