"""
Tests for LedgerProxy: supply, transfers with auto-burn, allowances,
burns, administration and the checks-effects-interactions ordering.
"""

from __future__ import annotations

import logging

import pytest

from cargocoin.ledger import (
    MAX_SUPPLY,
    MAX_UINT256,
    ZERO_ADDRESS,
    AlreadyInitialized,
    Approval,
    AutoBurn,
    AutoBurnStatusUpdated,
    BurnExemptionUpdated,
    EnforcedPause,
    ExceedsMaxSupply,
    EventLog,
    ExpectedPause,
    Initialized,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAddress,
    InvalidAmount,
    LedgerMetrics,
    LedgerLogicV1,
    LedgerProxy,
    LogicParams,
    Minted,
    NotInitialized,
    Paused,
    Role,
    RoleGranted,
    RoleRevoked,
    Transfer,
    Unauthorized,
    UnknownRole,
    Unpaused,
)

TOKEN = 10**18


def _snapshot(ledger: LedgerProxy) -> dict:
    return ledger.state_snapshot().to_dict()


class TestInitialize:
    """Tests for the one-time initializer."""

    def test_metadata_and_roles(self, ledger, accounts):
        assert ledger.name == "CargoCoin"
        assert ledger.symbol == "CC"
        assert ledger.decimals == 18
        assert ledger.max_supply == MAX_SUPPLY == 1_000_000_000 * TOKEN
        assert ledger.total_supply == 0
        assert ledger.auto_burn_enabled is True
        assert ledger.paused is False

        for role in (Role.ADMIN, Role.PAUSER, Role.UPGRADER):
            assert ledger.has_role(role, accounts.admin)
        assert ledger.is_minter(accounts.minter)
        assert not ledger.is_minter(accounts.admin)

    def test_events(self, ledger, accounts):
        events = ledger.events()
        assert events[-1] == Initialized(version=1)
        granted = [e for e in events if isinstance(e, RoleGranted)]
        assert RoleGranted(role="MINTER_ROLE", account=accounts.minter, sender=accounts.admin) in granted
        assert len(granted) == 4

    def test_initial_supply_goes_to_admin(self, accounts):
        ledger = LedgerProxy()
        ledger.initialize(accounts.admin, accounts.minter, 500 * TOKEN)
        assert ledger.balance_of(accounts.admin) == 500 * TOKEN
        assert ledger.total_supply == 500 * TOKEN
        assert Minted(to=accounts.admin, amount=500 * TOKEN) in ledger.events()

    def test_initialize_twice_rejected(self, ledger, accounts):
        before = _snapshot(ledger)
        with pytest.raises(AlreadyInitialized):
            ledger.initialize(accounts.alice, accounts.bob)
        assert _snapshot(ledger) == before

    def test_zero_admin_rejected(self, accounts):
        ledger = LedgerProxy()
        with pytest.raises(InvalidAddress):
            ledger.initialize(ZERO_ADDRESS, accounts.minter)
        assert not ledger.initialized
        assert len(ledger.event_log) == 0

    def test_initial_supply_above_cap_rejected(self, accounts):
        ledger = LedgerProxy()
        with pytest.raises(ExceedsMaxSupply):
            ledger.initialize(accounts.admin, accounts.minter, MAX_SUPPLY + 1)
        assert not ledger.initialized

    def test_calls_before_initialize_rejected(self, accounts):
        ledger = LedgerProxy()
        with pytest.raises(NotInitialized):
            ledger.mint(accounts.minter, accounts.alice, 1)
        with pytest.raises(NotInitialized):
            ledger.transfer(accounts.alice, accounts.bob, 1)
        with pytest.raises(NotInitialized):
            ledger.pause(accounts.admin)


class TestMint:
    """Tests for minting under the supply cap."""

    def test_mint(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 10_000)
        assert ledger.balance_of(accounts.alice) == 10_000
        assert ledger.total_supply == 10_000
        assert ledger.available_supply() == MAX_SUPPLY - 10_000
        assert ledger.circulating_supply() == 10_000
        assert ledger.events()[-2:] == [
            Transfer(sender=ZERO_ADDRESS, recipient=accounts.alice, value=10_000),
            Minted(to=accounts.alice, amount=10_000),
        ]

    def test_mint_above_max_supply_rejected(self, ledger, accounts):
        with pytest.raises(ExceedsMaxSupply):
            ledger.mint(accounts.minter, accounts.alice, MAX_SUPPLY + 1)
        assert ledger.total_supply == 0

    def test_mint_up_to_cap(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, MAX_SUPPLY)
        assert ledger.available_supply() == 0
        with pytest.raises(ExceedsMaxSupply):
            ledger.mint(accounts.minter, accounts.alice, 1)

    def test_non_minter_rejected(self, ledger, accounts):
        before = _snapshot(ledger)
        with pytest.raises(Unauthorized) as exc_info:
            ledger.mint(accounts.alice, accounts.alice, 1_000)
        assert exc_info.value.account == accounts.alice
        assert exc_info.value.role == "MINTER_ROLE"
        assert _snapshot(ledger) == before

    def test_zero_recipient_rejected(self, ledger, accounts):
        with pytest.raises(InvalidAddress):
            ledger.mint(accounts.minter, ZERO_ADDRESS, 1)

    def test_zero_amount_rejected(self, ledger, accounts):
        with pytest.raises(InvalidAmount):
            ledger.mint(accounts.minter, accounts.alice, 0)


class TestTransfer:
    """Tests for transfers and the 2% auto-burn."""

    def test_transfer_burns_two_percent(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 10_000)
        receipt = ledger.transfer(accounts.alice, accounts.bob, 1_000)

        assert ledger.balance_of(accounts.bob) == 980
        assert ledger.balance_of(accounts.alice) == 9_000
        assert ledger.total_burned == 20
        assert ledger.total_supply == 9_980
        assert receipt.net_amount == 980
        assert receipt.burn_amount == 20
        assert ledger.events()[-2:] == [
            Transfer(sender=accounts.alice, recipient=accounts.bob, value=980),
            AutoBurn(sender=accounts.alice, recipient=accounts.bob, amount=20),
        ]

    def test_exempt_sender_pays_no_burn(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 10_000)
        ledger.set_burn_exemption(accounts.admin, accounts.alice, True)
        ledger.transfer(accounts.alice, accounts.bob, 1_000)

        assert ledger.balance_of(accounts.bob) == 1_000
        assert ledger.total_burned == 0
        assert ledger.total_supply == 10_000
        assert not any(isinstance(e, AutoBurn) for e in ledger.events())

    def test_exemption_applies_to_sender_only(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 10_000)
        ledger.set_burn_exemption(accounts.admin, accounts.bob, True)
        ledger.transfer(accounts.alice, accounts.bob, 1_000)
        assert ledger.balance_of(accounts.bob) == 980

    def test_auto_burn_disabled(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 10_000)
        ledger.set_auto_burn_enabled(accounts.admin, False)
        ledger.transfer(accounts.alice, accounts.bob, 1_000)
        assert ledger.balance_of(accounts.bob) == 1_000
        assert ledger.total_burned == 0

    def test_small_amounts_round_burn_down(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 100)
        ledger.transfer(accounts.alice, accounts.bob, 49)
        assert ledger.balance_of(accounts.bob) == 49
        assert ledger.total_burned == 0

    def test_calculate_burn_matches_real_transfer(self, funded, accounts):
        amount = 1_234 * TOKEN + 567
        expected = funded.calculate_burn_amount(amount)
        receipt = funded.transfer(accounts.alice, accounts.bob, amount)
        assert expected == amount - receipt.net_amount

    def test_calculate_burn_amount_ignores_exemption_and_switch(self, ledger, accounts):
        ledger.set_auto_burn_enabled(accounts.admin, False)
        assert ledger.calculate_burn_amount(1_000) == 20
        assert ledger.calculate_burn_amount(50) == 1
        assert ledger.calculate_burn_amount(49) == 0

    def test_self_transfer_only_burns(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 10_000)
        ledger.transfer(accounts.alice, accounts.alice, 1_000)
        assert ledger.balance_of(accounts.alice) == 9_980
        assert ledger.total_supply == 9_980

    def test_insufficient_balance_rejected(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 100)
        before = _snapshot(ledger)
        with pytest.raises(InsufficientBalance):
            ledger.transfer(accounts.alice, accounts.bob, 101)
        assert _snapshot(ledger) == before

    def test_transfer_to_zero_rejected(self, funded, accounts):
        with pytest.raises(InvalidAddress):
            funded.transfer(accounts.alice, ZERO_ADDRESS, 1)

    def test_negative_amount_rejected(self, funded, accounts):
        with pytest.raises(InvalidAmount):
            funded.transfer(accounts.alice, accounts.bob, -1)


class TestAllowances:
    """Tests for approve/transfer_from."""

    def test_approve(self, funded, accounts):
        funded.approve(accounts.alice, accounts.spender, 500)
        assert funded.allowance(accounts.alice, accounts.spender) == 500
        assert funded.events()[-1] == Approval(owner=accounts.alice, spender=accounts.spender, value=500)

    def test_transfer_from_spends_allowance(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 10_000)
        ledger.approve(accounts.alice, accounts.spender, 500)
        receipt = ledger.transfer_from(accounts.spender, accounts.alice, accounts.bob, 500)

        assert ledger.allowance(accounts.alice, accounts.spender) == 0
        assert ledger.balance_of(accounts.bob) == 490
        assert ledger.balance_of(accounts.alice) == 9_500
        assert receipt.sender == accounts.alice
        assert receipt.burn_amount == 10

    def test_infinite_allowance_not_decremented(self, funded, accounts):
        funded.approve(accounts.alice, accounts.spender, MAX_UINT256)
        funded.transfer_from(accounts.spender, accounts.alice, accounts.bob, 1_000)
        assert funded.allowance(accounts.alice, accounts.spender) == MAX_UINT256

    def test_insufficient_allowance_rejected(self, funded, accounts):
        funded.approve(accounts.alice, accounts.spender, 10)
        before = _snapshot(funded)
        with pytest.raises(InsufficientAllowance):
            funded.transfer_from(accounts.spender, accounts.alice, accounts.bob, 11)
        assert _snapshot(funded) == before

    def test_allowance_ok_but_balance_short(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 5)
        ledger.approve(accounts.alice, accounts.spender, 100)
        with pytest.raises(InsufficientBalance):
            ledger.transfer_from(accounts.spender, accounts.alice, accounts.bob, 50)
        assert ledger.allowance(accounts.alice, accounts.spender) == 100

    def test_approve_zero_spender_rejected(self, funded, accounts):
        with pytest.raises(InvalidAddress):
            funded.approve(accounts.alice, ZERO_ADDRESS, 1)


class TestBurn:
    """Tests for explicit burns."""

    def test_burn(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 10_000)
        ledger.burn(accounts.alice, 1_000)
        assert ledger.balance_of(accounts.alice) == 9_000
        assert ledger.total_supply == 9_000
        assert ledger.total_burned == 1_000
        assert ledger.events()[-1] == Transfer(sender=accounts.alice, recipient=ZERO_ADDRESS, value=1_000)

    def test_burn_ignores_auto_burn_switch(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 10_000)
        ledger.set_auto_burn_enabled(accounts.admin, False)
        ledger.burn(accounts.alice, 1_000)
        assert ledger.total_supply == 9_000

    def test_burn_more_than_balance_rejected(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 10)
        with pytest.raises(InsufficientBalance):
            ledger.burn(accounts.alice, 11)

    def test_burn_from(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 10_000)
        ledger.approve(accounts.alice, accounts.spender, 300)
        ledger.burn_from(accounts.spender, accounts.alice, 200)
        assert ledger.allowance(accounts.alice, accounts.spender) == 100
        assert ledger.balance_of(accounts.alice) == 9_800
        assert ledger.total_burned == 200

    def test_burn_from_without_allowance_rejected(self, funded, accounts):
        with pytest.raises(InsufficientAllowance):
            funded.burn_from(accounts.spender, accounts.alice, 1)

    def test_burn_allowed_while_paused(self, funded, accounts):
        funded.pause(accounts.admin)
        funded.burn(accounts.alice, TOKEN)
        assert funded.total_burned == TOKEN

    def test_strict_pause_gates_mint_and_burn(self, accounts):
        ledger = LedgerProxy(logic=LedgerLogicV1(LogicParams(strict_pause=True)))
        ledger.initialize(accounts.admin, accounts.minter)
        ledger.mint(accounts.minter, accounts.alice, 1_000)
        ledger.approve(accounts.alice, accounts.spender, 1_000)
        ledger.pause(accounts.admin)

        with pytest.raises(EnforcedPause):
            ledger.mint(accounts.minter, accounts.alice, 1)
        with pytest.raises(EnforcedPause):
            ledger.burn(accounts.alice, 1)
        with pytest.raises(EnforcedPause):
            ledger.burn_from(accounts.spender, accounts.alice, 1)


class TestAdministration:
    """Tests for role-gated administrative operations."""

    def test_set_auto_burn_same_value_still_emits(self, ledger, accounts):
        before = _snapshot(ledger)
        ledger.set_auto_burn_enabled(accounts.admin, True)
        assert _snapshot(ledger) == before
        assert ledger.events()[-1] == AutoBurnStatusUpdated(enabled=True)

    def test_set_burn_exemption_same_value_still_emits(self, ledger, accounts):
        before = _snapshot(ledger)
        ledger.set_burn_exemption(accounts.admin, accounts.alice, False)
        assert _snapshot(ledger) == before
        assert ledger.events()[-1] == BurnExemptionUpdated(account=accounts.alice, exempt=False)

    def test_set_burn_exemption(self, ledger, accounts):
        ledger.set_burn_exemption(accounts.admin, accounts.alice, True)
        assert ledger.is_burn_exempt(accounts.alice)
        ledger.set_burn_exemption(accounts.admin, accounts.alice, False)
        assert not ledger.is_burn_exempt(accounts.alice)

    def test_set_burn_exemption_zero_rejected(self, ledger, accounts):
        with pytest.raises(InvalidAddress):
            ledger.set_burn_exemption(accounts.admin, ZERO_ADDRESS, True)

    def test_admin_setters_require_admin(self, ledger, accounts):
        with pytest.raises(Unauthorized):
            ledger.set_auto_burn_enabled(accounts.alice, False)
        with pytest.raises(Unauthorized):
            ledger.set_burn_exemption(accounts.minter, accounts.alice, True)
        with pytest.raises(Unauthorized):
            ledger.add_minter(accounts.minter, accounts.alice)

    def test_add_and_remove_minter(self, ledger, accounts):
        ledger.add_minter(accounts.admin, accounts.alice)
        assert ledger.is_minter(accounts.alice)
        assert ledger.role_members(Role.MINTER) == {accounts.minter, accounts.alice}

        ledger.remove_minter(accounts.admin, accounts.alice)
        assert not ledger.is_minter(accounts.alice)
        assert ledger.events()[-1] == RoleRevoked(
            role="MINTER_ROLE", account=accounts.alice, sender=accounts.admin
        )
        with pytest.raises(Unauthorized):
            ledger.mint(accounts.alice, accounts.alice, 1)

    def test_role_changes_emit_only_on_change(self, ledger, accounts):
        count = len(ledger.event_log)
        ledger.add_minter(accounts.admin, accounts.minter)
        ledger.remove_minter(accounts.admin, accounts.alice)
        assert len(ledger.event_log) == count

    def test_add_minter_zero_rejected(self, ledger, accounts):
        with pytest.raises(InvalidAddress):
            ledger.add_minter(accounts.admin, ZERO_ADDRESS)

    def test_remove_minter_zero_is_noop(self, ledger, accounts):
        ledger.remove_minter(accounts.admin, ZERO_ADDRESS)

    def test_grant_and_renounce_role(self, ledger, accounts):
        ledger.grant_role(accounts.admin, "pauser", accounts.alice)
        assert ledger.has_role(Role.PAUSER, accounts.alice)
        ledger.pause(accounts.alice)
        ledger.renounce_role(accounts.alice, Role.PAUSER)
        with pytest.raises(Unauthorized):
            ledger.unpause(accounts.alice)

    def test_revoke_role(self, ledger, accounts):
        ledger.revoke_role(accounts.admin, Role.PAUSER, accounts.admin)
        with pytest.raises(Unauthorized):
            ledger.pause(accounts.admin)


class TestPause:
    """Tests for the circuit breaker."""

    def test_pause_blocks_transfers_then_unpause(self, ledger, accounts):
        ledger.mint(accounts.minter, accounts.alice, 10_000)
        ledger.pause(accounts.admin)
        assert ledger.paused
        assert ledger.events()[-1] == Paused(account=accounts.admin)

        with pytest.raises(EnforcedPause):
            ledger.transfer(accounts.alice, accounts.bob, 1_000)
        assert ledger.balance_of(accounts.bob) == 0

        ledger.unpause(accounts.admin)
        assert ledger.events()[-1] == Unpaused(account=accounts.admin)
        ledger.transfer(accounts.alice, accounts.bob, 1_000)
        assert ledger.balance_of(accounts.bob) == 980
        assert ledger.total_burned == 20

    def test_pause_blocks_transfer_from(self, funded, accounts):
        funded.approve(accounts.alice, accounts.spender, 100)
        funded.pause(accounts.admin)
        with pytest.raises(EnforcedPause):
            funded.transfer_from(accounts.spender, accounts.alice, accounts.bob, 100)

    def test_mint_allowed_while_paused(self, ledger, accounts):
        ledger.pause(accounts.admin)
        ledger.mint(accounts.minter, accounts.alice, 1)
        assert ledger.total_supply == 1

    def test_pause_twice_rejected(self, ledger, accounts):
        ledger.pause(accounts.admin)
        with pytest.raises(EnforcedPause):
            ledger.pause(accounts.admin)

    def test_unpause_when_not_paused_rejected(self, ledger, accounts):
        with pytest.raises(ExpectedPause):
            ledger.unpause(accounts.admin)

    def test_pause_requires_pauser(self, ledger, accounts):
        with pytest.raises(Unauthorized):
            ledger.pause(accounts.minter)


class TestInteractions:
    """Subscribers run after the commit, never before."""

    def test_subscriber_sees_committed_state(self, funded, accounts):
        seen = []

        def on_event(entry):
            if isinstance(entry.event, Transfer):
                seen.append((entry.seq, funded.balance_of(accounts.bob), funded.total_burned))

        funded.subscribe(on_event)
        funded.transfer(accounts.alice, accounts.bob, 1_000 * TOKEN)
        assert seen == [(seen[0][0], 980 * TOKEN, 20 * TOKEN)]

    def test_reentrant_call_from_subscriber(self, funded, accounts):
        forwarded = []

        def forward(entry):
            event = entry.event
            if isinstance(event, Transfer) and event.recipient == accounts.bob and not forwarded:
                forwarded.append(event.value)
                funded.transfer(accounts.bob, accounts.carol, event.value)

        funded.subscribe(forward)
        funded.transfer(accounts.alice, accounts.bob, 1_000)

        assert forwarded == [980]
        assert funded.balance_of(accounts.bob) == 0
        assert funded.balance_of(accounts.carol) == 980 - 19
        ok, failed = funded.state_snapshot().check_invariants()
        assert ok, failed

    def test_nested_calls_delivered_in_sequence_order(self, funded, accounts):
        delivered = []

        def forward(entry):
            delivered.append(entry.seq)
            event = entry.event
            if isinstance(event, Transfer) and event.recipient == accounts.bob and len(delivered) == 1:
                funded.transfer(accounts.bob, accounts.carol, event.value)

        start = funded.event_log.next_seq
        funded.subscribe(forward)
        funded.transfer(accounts.alice, accounts.bob, 1_000)

        assert funded.event_log.next_seq == start + 4
        assert delivered == [start, start + 1, start + 2, start + 3]

    def test_failing_subscriber_does_not_fail_committed_call(self, funded, accounts, caplog):
        seen = []

        def boom(entry):
            raise RuntimeError("indexer down")

        funded.subscribe(boom)
        funded.subscribe(seen.append)
        with caplog.at_level(logging.ERROR, logger="cargocoin"):
            receipt = funded.transfer(accounts.alice, accounts.bob, 1_000)

        assert receipt.net_amount == 980
        assert funded.balance_of(accounts.bob) == 980
        assert [entry.event.name for entry in seen] == ["Transfer", "AutoBurn"]
        assert any("subscriber failed on Transfer" in r.getMessage() for r in caplog.records)

    def test_supplied_empty_event_log_is_kept(self, accounts):
        log = EventLog(start_seq=40)
        seen = []
        log.subscribe(seen.append)
        ledger = LedgerProxy(event_log=log)
        ledger.initialize(accounts.admin, accounts.minter)

        assert ledger.event_log is log
        assert [entry.seq for entry in seen] == [40, 41, 42, 43, 44]

    def test_rejected_call_notifies_nobody(self, ledger, accounts):
        seen = []
        ledger.subscribe(seen.append)
        with pytest.raises(Unauthorized):
            ledger.mint(accounts.alice, accounts.alice, 1)
        assert seen == []

    def test_unsubscribe(self, ledger, accounts):
        seen = []
        unsubscribe = ledger.subscribe(seen.append)
        ledger.mint(accounts.minter, accounts.alice, 1)
        unsubscribe()
        ledger.mint(accounts.minter, accounts.alice, 1)
        assert len(seen) == 2


class TestObservability:
    """Metrics and logging hooks of the proxy."""

    def test_metrics_recorded(self, accounts):
        metrics = LedgerMetrics()
        ledger = LedgerProxy(metrics=metrics)
        ledger.initialize(accounts.admin, accounts.minter)
        ledger.mint(accounts.minter, accounts.alice, 10_000)
        ledger.transfer(accounts.alice, accounts.bob, 1_000)
        with pytest.raises(Unauthorized):
            ledger.mint(accounts.alice, accounts.alice, 1)

        assert metrics.operations_by_name["mint"].value == 1
        assert metrics.rejections_by_code["Unauthorized"].value == 1
        assert metrics.total_supply.value == 9_980
        assert metrics.total_burned.value == 20
        assert metrics.events_total.value == len(ledger.event_log)
        assert metrics.subscriber_errors_total.value == 0

        text = metrics.to_prometheus()
        assert 'cargocoin_operations_total{operation="transfer"} 1' in text
        assert 'cargocoin_rejections_total{code="Unauthorized"} 1' in text

    def test_subscriber_errors_counted(self, accounts):
        metrics = LedgerMetrics()
        ledger = LedgerProxy(metrics=metrics)

        def boom(entry):
            raise RuntimeError("indexer down")

        ledger.subscribe(boom)
        ledger.initialize(accounts.admin, accounts.minter)

        assert ledger.initialized
        assert metrics.subscriber_errors_total.value == len(ledger.event_log)

    def test_unknown_role_is_a_ledger_rejection(self, accounts, caplog):
        metrics = LedgerMetrics()
        ledger = LedgerProxy(metrics=metrics)
        ledger.initialize(accounts.admin, accounts.minter)
        before = len(ledger.event_log)

        with caplog.at_level(logging.WARNING, logger="cargocoin"):
            with pytest.raises(UnknownRole):
                ledger.grant_role(accounts.admin, "bogus", accounts.alice)

        assert metrics.rejections_by_code["UnknownRole"].value == 1
        assert any("rejected grant_role: UnknownRole" in r.getMessage() for r in caplog.records)
        assert len(ledger.event_log) == before

    def test_rejection_logged_at_warning(self, ledger, accounts, caplog):
        with caplog.at_level(logging.WARNING, logger="cargocoin"):
            with pytest.raises(Unauthorized):
                ledger.mint(accounts.alice, accounts.alice, 1)
        assert any("rejected mint: Unauthorized" in r.getMessage() for r in caplog.records)

    def test_invariants_hold_after_every_operation(self, funded, accounts):
        funded.approve(accounts.alice, accounts.spender, 5_000 * TOKEN)
        funded.transfer_from(accounts.spender, accounts.alice, accounts.bob, 1_000 * TOKEN)
        funded.burn(accounts.bob, 100 * TOKEN)
        funded.transfer(accounts.bob, accounts.carol, 500 * TOKEN)
        ok, failed = funded.state_snapshot().check_invariants()
        assert ok, failed
