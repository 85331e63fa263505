"""
Tests for Vault Orchestrator

Покрывает:
- Deposit/withdraw в base asset и через конверсию
- Стадии операций в OperationReceipt
- Отказы без изменения Pool State и с возвратом escrow
- DegeneratePolicy на уровне vault
- Сохранение снапшотов через PoolStateStore
- Конкурентные операции: инвариант суммы и платёжеспособность
"""

import logging
import threading
from decimal import Decimal

import pytest

from pooled_vault.conversion import ConstantProductVenue, GatewayConfig
from pooled_vault.core.domain import PoolState, TokenDescriptor
from pooled_vault.core.errors import (
    ConversionFailed,
    DegenerateState,
    InsufficientShares,
    SlippageExceeded,
    UnsupportedToken,
    ZeroAmount,
)
from pooled_vault.ledger import DegeneratePolicy, LedgerConfig
from pooled_vault.registry import AssetRegistry
from pooled_vault.storage import PoolStateStore
from pooled_vault.vault import (
    InMemoryCustody,
    OperationKind,
    OperationStage,
    VaultConfig,
    VaultOrchestrator,
)


BASE = "xSUSHI"
USDT = "USDT"
SUSHI = "SUSHI"
DAI = "DAI"

V = OperationStage.VALIDATING
C = OperationStage.CONVERTING
A = OperationStage.ACCOUNTING
S = OperationStage.SETTLING
D = OperationStage.DONE
F = OperationStage.FAILED


class ScriptedVenue:
    """Venue 1:1 с недопоставкой shortfall_bps при swap."""

    def __init__(self, shortfall_bps: int = 0):
        self.shortfall_bps = shortfall_bps

    def quote(self, token_in, token_out, amount_in):
        return amount_in

    def swap(self, token_in, token_out, amount_in, min_amount_out):
        return amount_in - amount_in * self.shortfall_bps // 10_000


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def registry():
    return AssetRegistry(
        [
            TokenDescriptor(token_id=BASE, symbol="xSUSHI", is_base_asset=True),
            TokenDescriptor(token_id=USDT, symbol="USDT", decimals=6),
            TokenDescriptor(token_id=SUSHI, symbol="SUSHI"),
            TokenDescriptor(token_id=DAI, symbol="DAI"),
        ]
    )


@pytest.fixture
def venue():
    """1 USDT ~ 1 xSUSHI, 1 SUSHI ~ 0.83 xSUSHI; пула для DAI нет."""
    venue = ConstantProductVenue(fee_bps=30)
    venue.add_pool(BASE, 10**30, USDT, 10**18)
    venue.add_pool(BASE, 10**30, SUSHI, 12 * 10**29)
    return venue


@pytest.fixture
def custody():
    custody = InMemoryCustody()
    for user in ("alice", "bob", "carol"):
        custody.mint(BASE, user, 10**24)
        custody.mint(USDT, user, 10**12)
        custody.mint(SUSHI, user, 10**24)
        custody.mint(DAI, user, 10**24)
    return custody


@pytest.fixture
def vault(registry, custody, venue):
    return VaultOrchestrator(registry, custody, venue)


def vault_base(vault):
    return vault.custody.balance_of(BASE, vault.custody.vault_account)


# =============================================================================
# DEPOSIT / WITHDRAW
# =============================================================================


class TestDepositWithdraw:
    """Успешные операции."""

    def test_base_round_trip_is_exact(self, vault, custody):
        amount = 10**21
        shares = vault.deposit("alice", amount, BASE)

        assert shares == amount
        assert vault.total_assets() == amount
        assert vault.total_shares() == amount
        assert vault.share_balance_of("alice") == amount
        assert vault_base(vault) == amount

        paid = vault.withdraw("alice", shares, "alice", BASE)

        assert paid == amount
        assert custody.balance_of(BASE, "alice") == 10**24
        assert vault.total_assets() == 0
        assert vault.total_shares() == 0

    def test_proportional_second_deposit(self, vault):
        vault.deposit("alice", 1000, BASE)
        assert vault.deposit("bob", 500, BASE) == 500
        assert vault.withdraw("alice", 750, "alice", BASE) == 750
        assert vault.state.share_balances == {"alice": 250, "bob": 500}
        assert vault.total_assets() == 750

    def test_usdt_round_trip_within_one_percent(self, vault, custody, venue):
        amount = 1000 * 10**6
        expected_base = venue.quote(USDT, BASE, amount)

        shares = vault.deposit("alice", amount, USDT)

        assert shares == expected_base
        assert vault.total_assets() == expected_base
        assert vault_base(vault) == expected_base
        assert custody.balance_of(USDT, vault.custody.vault_account) == 0

        paid = vault.withdraw("alice", shares, "alice", USDT)

        assert paid < amount
        assert paid >= amount * 99 // 100
        assert custody.balance_of(USDT, "alice") == 10**12 - amount + paid
        assert vault_base(vault) == 0

    def test_withdraw_to_other_recipient(self, vault, custody):
        vault.deposit("alice", 1000, BASE)
        vault.withdraw("alice", 400, "carol", BASE)

        assert custody.balance_of(BASE, "carol") == 10**24 + 400
        assert custody.balance_of(BASE, "alice") == 10**24 - 1000

    def test_drain_then_redeposit_bootstraps(self, vault):
        vault.deposit("alice", 1000, BASE)
        vault.withdraw("alice", 1000, "alice", BASE)
        assert vault.state.has_depositor("alice")

        assert vault.deposit("bob", 500, BASE) == 500
        assert vault.price_per_share() == Decimal(1)

    def test_snapshot_id_increments_per_commit(self, vault):
        vault.deposit("alice", 1000, BASE)
        vault.deposit("bob", 1000, BASE)
        vault.withdraw("bob", 10, "bob", BASE)
        assert vault.state.snapshot_id == 3


# =============================================================================
# RECEIPTS
# =============================================================================


class TestReceipts:
    """Стадии операций."""

    def test_base_deposit_skips_converting(self, vault):
        vault.deposit("alice", 1000, BASE)
        receipt = vault.last_receipt

        assert receipt.kind == OperationKind.DEPOSIT
        assert receipt.stages == (V, A, S, D)
        assert receipt.succeeded
        assert receipt.amount_out == 1000
        assert receipt.shares_delta == 1000
        assert receipt.base_amount == 1000
        assert receipt.snapshot_id == vault.state.snapshot_id
        assert receipt.failure_reason is None

    def test_token_deposit_converts(self, vault):
        vault.deposit("alice", 10**6, USDT)
        receipt = vault.last_receipt
        assert receipt.stages == (V, C, A, S, D)
        assert receipt.amount_in == 10**6
        assert receipt.base_amount == vault.total_assets()

    def test_withdraw_stages(self, vault):
        vault.deposit("alice", 1000, BASE)
        vault.withdraw("alice", 100, "alice", SUSHI)
        receipt = vault.last_receipt

        assert receipt.kind == OperationKind.WITHDRAW
        assert receipt.stages == (V, A, S, D)
        assert receipt.shares_delta == -100
        assert receipt.base_amount == 100
        assert receipt.token == SUSHI


# =============================================================================
# FAILURES
# =============================================================================


class TestFailures:
    """Отказы: Pool State не меняется, escrow возвращается."""

    def test_insufficient_shares(self, vault):
        vault.deposit("alice", 1000, BASE)
        before = vault.state

        with pytest.raises(InsufficientShares):
            vault.withdraw("alice", 1001, "alice", BASE)

        assert vault.state is before
        receipt = vault.last_receipt
        assert receipt.stages == (V, F)
        assert receipt.failure_reason == "insufficient_shares"
        assert not receipt.succeeded
        assert receipt.snapshot_id is None

    def test_unsupported_token(self, vault, custody):
        before = vault.state
        with pytest.raises(UnsupportedToken):
            vault.deposit("alice", 1000, "WETH")
        with pytest.raises(UnsupportedToken):
            vault.withdraw("alice", 1, "alice", "WETH")

        assert vault.state is before
        assert vault.last_receipt.failure_reason == "unsupported_token"

    def test_zero_amount(self, vault, custody):
        with pytest.raises(ZeroAmount):
            vault.deposit("alice", 0, BASE)
        with pytest.raises(ZeroAmount):
            vault.withdraw("alice", 0, "alice", BASE)
        assert custody.balance_of(BASE, "alice") == 10**24

    def test_non_integer_amount(self, vault):
        with pytest.raises(ValueError, match="must be an integer"):
            vault.deposit("alice", 10.5, BASE)
        assert vault.last_receipt.failure_reason == "ValueError"

    def test_deposit_slippage_refunds_input(self, vault, custody, venue):
        vault.deposit("bob", 1000, BASE)
        before = vault.state
        reserves = venue.reserves(BASE, USDT)

        with pytest.raises(SlippageExceeded):
            vault.deposit("alice", 10**6, USDT, min_base_out=10**30)

        assert vault.state is before
        assert custody.balance_of(USDT, "alice") == 10**12
        assert custody.balance_of(USDT, custody.vault_account) == 0
        assert venue.reserves(BASE, USDT) == reserves

        receipt = vault.last_receipt
        assert receipt.stages == (V, C, F)
        assert receipt.failure_reason == "slippage_exceeded"
        assert "DEPOSIT failed at CONVERTING" in receipt.details

    def test_withdraw_slippage_keeps_state(self, registry, custody):
        vault = VaultOrchestrator(registry, custody, ScriptedVenue(shortfall_bps=200))
        vault.deposit("alice", 1000, BASE)
        before = vault.state

        with pytest.raises(SlippageExceeded):
            vault.withdraw("alice", 500, "alice", USDT, slippage_bps=100)

        assert vault.state is before
        assert vault.share_balance_of("alice") == 1000
        assert vault_base(vault) == 1000
        assert vault.last_receipt.stages == (V, A, S, F)

        assert vault.withdraw("alice", 500, "bob", USDT, slippage_bps=300) == 490
        assert custody.balance_of(USDT, "bob") == 10**12 + 490
        assert vault_base(vault) == 500

    def test_conversion_failure_refunds_input(self, vault, custody):
        """DAI зарегистрирован, но у venue нет пула."""
        with pytest.raises(ConversionFailed) as exc_info:
            vault.deposit("alice", 10**18, DAI)

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert custody.balance_of(DAI, "alice") == 10**24
        assert vault.total_shares() == 0
        assert vault.last_receipt.failure_reason == "conversion_failed"

    def test_zero_share_deposit_rejected_before_swap(self, registry, custody, venue):
        """Гарантированный выход обмена даёт 0 shares: ни escrow, ни swap."""
        state = PoolState(
            base_asset=BASE,
            total_base_assets=10**40,
            total_shares=1,
            share_balances={"whale": 1},
        )
        custody.mint(BASE, custody.vault_account, 10**40)
        vault = VaultOrchestrator(registry, custody, venue, state=state)
        reserves = venue.reserves(BASE, USDT)

        with pytest.raises(ZeroAmount):
            vault.deposit("alice", 10**6, USDT)

        assert vault.state is state
        assert custody.balance_of(USDT, "alice") == 10**12
        assert custody.balance_of(BASE, "alice") == 10**24
        assert custody.balance_of(USDT, custody.vault_account) == 0
        assert venue.reserves(BASE, USDT) == reserves
        assert vault_base(vault) == 10**40
        assert vault.last_receipt.stages == (V, F)
        assert vault.last_receipt.failure_reason == "zero_amount"

    def test_explicit_zero_min_base_out_rejected(self, vault, custody, venue):
        reserves = venue.reserves(BASE, USDT)

        with pytest.raises(ZeroAmount):
            vault.deposit("alice", 10**6, USDT, min_base_out=0)

        assert custody.balance_of(USDT, "alice") == 10**12
        assert venue.reserves(BASE, USDT) == reserves

    def test_failed_commit_after_swap_refunds_base(
        self, vault, custody, venue, tmp_path, monkeypatch
    ):
        """Обмен исполнен, запись снапшота упала: возврат в base asset."""
        store = PoolStateStore(tmp_path / "pool.json")
        vault.store = store
        expected_base = venue.quote(USDT, BASE, 10**6)

        def broken_save(state):
            raise OSError("disk full")

        monkeypatch.setattr(store, "save", broken_save)

        with pytest.raises(OSError):
            vault.deposit("alice", 10**6, USDT)

        assert vault.total_shares() == 0
        assert custody.balance_of(USDT, "alice") == 10**12 - 10**6
        assert custody.balance_of(BASE, "alice") == 10**24 + expected_base
        assert custody.balance_of(USDT, custody.vault_account) == 0
        assert vault_base(vault) == 0
        assert vault.last_receipt.stages == (V, C, A, S, F)

    def test_failed_commit_keeps_state(self, vault, custody, tmp_path, monkeypatch):
        store = PoolStateStore(tmp_path / "pool.json")
        vault.store = store

        def broken_save(state):
            raise OSError("disk full")

        monkeypatch.setattr(store, "save", broken_save)

        with pytest.raises(OSError):
            vault.deposit("alice", 1000, BASE)

        assert vault.total_shares() == 0
        assert custody.balance_of(BASE, "alice") == 10**24
        assert vault.last_receipt.stages == (V, A, S, F)
        assert vault.last_receipt.failure_reason == "OSError"

    def test_failed_withdraw_commit_keeps_shares_and_tokens(
        self, vault, custody, tmp_path, monkeypatch
    ):
        store = PoolStateStore(tmp_path / "pool.json")
        vault.store = store
        vault.deposit("alice", 1000, BASE)
        before = vault.state

        def broken_save(state):
            raise OSError("disk full")

        monkeypatch.setattr(store, "save", broken_save)

        with pytest.raises(OSError):
            vault.withdraw("alice", 1000, "alice", BASE)

        assert vault.state is before
        assert vault.total_assets() == 1000
        assert vault.share_balance_of("alice") == 1000
        assert vault_base(vault) == 1000
        assert custody.balance_of(BASE, "alice") == 10**24 - 1000
        assert vault.last_receipt.stages == (V, A, S, F)
        assert vault.last_receipt.failure_reason == "OSError"

    def test_depositor_without_funds(self, vault):
        with pytest.raises(ValueError, match="cannot transfer"):
            vault.deposit("dave", 1000, BASE)
        assert vault.total_shares() == 0


# =============================================================================
# DEGENERATE STATE
# =============================================================================


class TestDegenerateState:
    @pytest.fixture
    def degenerate(self):
        return PoolState(
            base_asset=BASE,
            total_base_assets=0,
            total_shares=10,
            share_balances={"dust": 10},
        )

    def test_fail_closed_rejects_before_escrow(self, registry, custody, venue, degenerate):
        vault = VaultOrchestrator(registry, custody, venue, state=degenerate)

        with pytest.raises(DegenerateState):
            vault.deposit("alice", 1000, BASE)

        assert custody.balance_of(BASE, "alice") == 10**24
        assert vault.last_receipt.stages == (V, F)
        assert vault.last_receipt.failure_reason == "degenerate_state"

    def test_rebootstrap(self, registry, custody, venue, degenerate):
        config = VaultConfig(ledger=LedgerConfig(degenerate_policy=DegeneratePolicy.REBOOTSTRAP))
        vault = VaultOrchestrator(registry, custody, venue, config=config, state=degenerate)

        assert vault.deposit("alice", 1000, BASE) == 1000
        assert vault.total_shares() == 1010


# =============================================================================
# QUERIES / CONFIG
# =============================================================================


class TestQueries:
    def test_metadata(self, registry, custody, venue):
        config = VaultConfig(share_name="Sushi Shares", share_symbol="ySushi")
        vault = VaultOrchestrator(registry, custody, venue, config=config)
        assert vault.name == "Sushi Shares"
        assert vault.symbol == "ySushi"

    def test_previews(self, vault, venue):
        assert vault.preview_deposit(1000, BASE) == 1000
        vault.deposit("alice", 1000, BASE)

        assert vault.preview_withdraw(400, BASE) == 400
        assert vault.preview_withdraw(400, SUSHI) == venue.quote(BASE, SUSHI, 400)
        assert vault.preview_deposit(10**6, USDT) == venue.quote(USDT, BASE, 10**6)

    def test_preview_does_not_mutate(self, vault, venue):
        reserves = venue.reserves(BASE, USDT)
        vault.preview_deposit(10**6, USDT)
        assert venue.reserves(BASE, USDT) == reserves
        assert vault.state.snapshot_id == 0

    def test_price_per_share(self, registry, custody, venue):
        state = PoolState(
            base_asset=BASE,
            total_base_assets=1500,
            total_shares=1000,
            share_balances={"alice": 1000},
        )
        vault = VaultOrchestrator(registry, custody, venue, state=state)
        assert vault.price_per_share() == Decimal("1.5")

    def test_base_mismatch_rejected(self, registry, custody, venue):
        with pytest.raises(ValueError, match="does not match registry base"):
            VaultOrchestrator(registry, custody, venue, state=PoolState.empty(USDT))

    def test_missing_venue_rejected(self, registry, custody):
        with pytest.raises(ValueError, match="requires a swap venue"):
            VaultOrchestrator(registry, custody)

    def test_empty_share_name_rejected(self):
        with pytest.raises(ValueError, match="share_name"):
            VaultConfig(share_name=" ")

    def test_gateway_config_passed_through(self, registry, custody, venue):
        config = VaultConfig(gateway=GatewayConfig(withdraw_slippage_bps=50))
        vault = VaultOrchestrator(registry, custody, venue, config=config)
        assert vault.gateway.config.withdraw_slippage_bps == 50


# =============================================================================
# PERSISTENCE
# =============================================================================


class TestPersistence:
    def test_commits_are_saved(self, registry, custody, venue, tmp_path):
        store = PoolStateStore(tmp_path / "pool.json")
        vault = VaultOrchestrator.from_store(registry, custody, store, venue=venue)
        assert vault.state == PoolState.empty(BASE)

        vault.deposit("alice", 1000, BASE)
        vault.withdraw("alice", 300, "alice", BASE)

        assert store.load() == vault.state

        restored = VaultOrchestrator.from_store(registry, custody, store, venue=venue)
        assert restored.state == vault.state
        assert restored.share_balance_of("alice") == 700

    def test_failed_operation_not_saved(self, registry, custody, venue, tmp_path):
        store = PoolStateStore(tmp_path / "pool.json")
        vault = VaultOrchestrator(registry, custody, venue, store=store)
        vault.deposit("alice", 1000, BASE)

        with pytest.raises(InsufficientShares):
            vault.withdraw("bob", 1, "bob", BASE)

        assert store.load().snapshot_id == 1

    def test_failed_payout_restores_saved_snapshot(self, registry, custody, tmp_path):
        store = PoolStateStore(tmp_path / "pool.json")
        vault = VaultOrchestrator(registry, custody, ScriptedVenue(shortfall_bps=200), store=store)
        vault.deposit("alice", 1000, BASE)
        before = vault.state

        with pytest.raises(SlippageExceeded):
            vault.withdraw("alice", 500, "alice", USDT, slippage_bps=100)

        assert vault.state is before
        assert store.load() == before
        assert store.load().snapshot_id == 1
        assert custody.balance_of(USDT, "alice") == 10**12


# =============================================================================
# CONCURRENCY
# =============================================================================


class TestConcurrency:
    def test_concurrent_operations_preserve_invariants(self, vault, custody):
        users = ["alice", "bob", "carol"]
        errors = []

        def worker(user):
            try:
                for i in range(20):
                    vault.deposit(user, 1000 + i, BASE)
                    if i % 3 == 0:
                        vault.withdraw(user, 500, user, BASE)
                    if i % 5 == 0:
                        vault.deposit(user, 10**6, USDT)
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(u,)) for u in users]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        state = vault.state
        assert sum(state.share_balances.values()) == state.total_shares
        assert vault_base(vault) == state.total_base_assets

        owed = sum(
            vault.ledger.convert_to_assets(state, balance)
            for balance in state.share_balances.values()
        )
        assert owed <= state.total_base_assets


# =============================================================================
# LOGGING
# =============================================================================


class TestLogging:
    def test_operations_logged(self, vault, caplog):
        with caplog.at_level(logging.INFO, logger="pooled_vault"):
            vault.deposit("alice", 1000, BASE)
            vault.deposit("alice", 500, BASE)
            with pytest.raises(InsufficientShares):
                vault.withdraw("alice", 5000, "alice", BASE)

        messages = [r.getMessage() for r in caplog.records]
        assert any("minted 1000 shares (bootstrap)" in m for m in messages)
        assert sum("alice (new depositor) deposited" in m for m in messages) == 1
        assert any("alice deposited 500" in m for m in messages)
        assert any(
            r.levelno == logging.WARNING and "WITHDRAW failed at VALIDATING" in r.getMessage()
            for r in caplog.records
        )
