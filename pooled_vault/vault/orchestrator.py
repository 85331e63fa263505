"""Vault Orchestrator — координация deposit/withdraw.

Deposit:
1. VALIDATING: токен принят, amount > 0, пул не вырожден (FAIL_CLOSED),
   гарантированный минимум конверсии даёт > 0 shares;
   затем вход переводится в escrow vault
2. CONVERTING: token -> base через Conversion Gateway (пропуск для base)
3. ACCOUNTING: mint в Share Ledger на рабочем снапшоте
4. SETTLING: коммит рабочего снапшота, вход уже в escrow
5. DONE

Withdrawal:
1. VALIDATING: токен принят, shares > 0, баланс shares достаточен
2. ACCOUNTING: burn в Share Ledger на рабочем снапшоте
3. SETTLING: коммит рабочего снапшота, затем base -> token через Gateway
   и перевод получателю
4. DONE

Atomicity:
- вся последовательность "read totals -> convert -> delta -> settle -> commit"
  выполняется под одним RLock пула (single writer)
- deposit: снапшот коммитится после mint; при отказе escrow возвращается
  depositor во входном токене (в base asset, только если обмен уже исполнен
  и не удалась запись снапшота)
- withdrawal: снапшот с burn коммитится до выплаты; при отказе конверсии
  или перевода восстанавливается и пересохраняется исходный снапшот
"""

import threading
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from pooled_vault.conversion.gateway import ConversionGateway, ConversionResult, GatewayConfig
from pooled_vault.conversion.venues import SwapVenue
from pooled_vault.core.domain.pool_state import PoolState
from pooled_vault.core.errors import InsufficientShares, UnsupportedToken, ZeroAmount
from pooled_vault.ledger.share_ledger import LedgerConfig, ShareLedger
from pooled_vault.registry.asset_registry import AssetRegistry
from pooled_vault.storage.json_store import PoolStateStore
from pooled_vault.utils.logger_utils import get_logger
from pooled_vault.vault.custody import TokenCustody
from pooled_vault.vault.operations import (
    OperationKind,
    OperationReceipt,
    OperationStage,
    OperationTracker,
)

logger = get_logger(__name__)


# =============================================================================
# CONFIG
# =============================================================================


@dataclass(frozen=True)
class VaultConfig:
    """Конфигурация vault.

    share_name / share_symbol: метаданные share токена
    (например, "Sushi Shares" / "ySushi").
    """

    share_name: str = "Vault Shares"
    share_symbol: str = "vSHARE"
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)

    def __post_init__(self) -> None:
        if not self.share_name.strip():
            raise ValueError("share_name cannot be empty")
        if not self.share_symbol.strip():
            raise ValueError("share_symbol cannot be empty")


# =============================================================================
# ORCHESTRATOR
# =============================================================================


class VaultOrchestrator:
    """Vault Orchestrator одного пула.

    Владеет текущим снапшотом PoolState; для нескольких независимых пулов
    создаются отдельные экземпляры orchestrator.
    """

    def __init__(
        self,
        registry: AssetRegistry,
        custody: TokenCustody,
        venue: Optional[SwapVenue] = None,
        config: Optional[VaultConfig] = None,
        state: Optional[PoolState] = None,
        store: Optional[PoolStateStore] = None,
    ):
        """
        Args:
            registry: Asset Registry пула
            custody: token custody (pull/push/record_conversion)
            venue: swap venue для не-base токенов
            config: конфигурация vault (опционально, используется default)
            state: начальный снапшот (опционально, иначе пустой пул)
            store: хранилище снапшотов; при наличии сохраняет каждый коммит

        Raises:
            ValueError: если base asset снапшота не совпадает с registry
        """
        self.registry = registry
        self.custody = custody
        self.config = config or VaultConfig()
        self.gateway = ConversionGateway(registry, venue, self.config.gateway)
        self.ledger = ShareLedger(self.config.ledger)
        self.store = store

        base = registry.base_asset.token_id
        if state is None:
            state = PoolState.empty(base)
        elif state.base_asset != base:
            raise ValueError(
                f"Snapshot base asset {state.base_asset!r} does not match registry base {base!r}"
            )
        self._state = state
        self._lock = threading.RLock()
        self._last_receipt: Optional[OperationReceipt] = None

    @classmethod
    def from_store(
        cls,
        registry: AssetRegistry,
        custody: TokenCustody,
        store: PoolStateStore,
        venue: Optional[SwapVenue] = None,
        config: Optional[VaultConfig] = None,
    ) -> "VaultOrchestrator":
        """Восстановление пула из сохранённого снапшота (или пустой пул)."""
        state = store.load() if store.exists() else None
        return cls(registry, custody, venue=venue, config=config, state=state, store=store)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.config.share_name

    @property
    def symbol(self) -> str:
        return self.config.share_symbol

    @property
    def state(self) -> PoolState:
        """Текущий закоммиченный снапшот."""
        return self._state

    @property
    def last_receipt(self) -> Optional[OperationReceipt]:
        return self._last_receipt

    def share_balance_of(self, depositor: str) -> int:
        return self._state.share_balance_of(depositor)

    def total_assets(self) -> int:
        return self._state.total_base_assets

    def total_shares(self) -> int:
        return self._state.total_shares

    def price_per_share(self) -> Decimal:
        return self._state.price_per_share

    def preview_deposit(self, amount: int, token: str) -> int:
        """Оценка shares за deposit по quote venue (без исполнения)."""
        self._validate_request(token, amount)
        base_amount = self.gateway.quote_to_base(token, amount)
        return self.ledger.preview_mint(self._state, base_amount)

    def preview_withdraw(self, shares: int, token: str) -> int:
        """Оценка выхода в token за shares по quote venue (без исполнения)."""
        self._validate_request(token, shares)
        base_amount = self.ledger.convert_to_assets(self._state, shares)
        if base_amount == 0:
            return 0
        return self.gateway.quote_from_base(token, base_amount)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def deposit(
        self,
        depositor: str,
        amount: int,
        token: str,
        min_base_out: Optional[int] = None,
    ) -> int:
        """Deposit amount token от depositor.

        Args:
            depositor: участник, получающий shares
            amount: сумма входного токена (минимальные единицы)
            token: входной токен
            min_base_out: минимально допустимый результат конверсии в base

        Returns:
            Количество выпущенных shares

        Raises:
            UnsupportedToken, ZeroAmount, DegenerateState,
            ConversionFailed, SlippageExceeded
        """
        with self._lock:
            tracker = OperationTracker(OperationKind.DEPOSIT, depositor, token, amount)
            state = self._state
            escrowed = False
            conversion: Optional[ConversionResult] = None

            try:
                # 1. VALIDATING
                self._validate_request(token, amount)
                self.ledger.check_degenerate(state)
                is_base = self.registry.is_base_asset(token)

                # Выход обмена не ниже guaranteed, а mint монотонен по сумме:
                # если guaranteed даёт 0 shares, отказ до escrow и до swap
                guaranteed = self.gateway.guaranteed_base_out(token, amount, min_base_out)
                self.ledger.preview_mint(state, guaranteed)

                self.custody.pull(token, depositor, amount)
                escrowed = True

                # 2. CONVERTING (стадия пропускается для base asset)
                if not is_base:
                    tracker.advance(OperationStage.CONVERTING)
                conversion = self.gateway.to_base(
                    token, amount, min_base_out if is_base else guaranteed
                )
                if not conversion.identity:
                    self.custody.record_conversion(
                        token, amount, self.gateway.base_asset, conversion.amount_out
                    )
                base_amount = conversion.amount_out

                # 3. ACCOUNTING
                tracker.advance(OperationStage.ACCOUNTING)
                mint = self.ledger.mint(state, depositor, base_amount)

                # 4. SETTLING
                tracker.advance(OperationStage.SETTLING)
                self._commit(mint.state)
            except Exception as exc:
                self._fail(tracker, exc)
                if escrowed:
                    self._refund_deposit(depositor, token, amount, conversion)
                raise

            receipt = tracker.done(
                amount_out=mint.shares_minted,
                shares_delta=mint.shares_minted,
                base_amount=base_amount,
                snapshot_id=mint.state.snapshot_id,
            )
            self._last_receipt = receipt

        logger.info(
            "Deposit: %s%s deposited %d %s (%d base) -> minted %d shares%s; "
            "total_assets=%d total_shares=%d",
            depositor, "" if state.has_depositor(depositor) else " (new depositor)",
            amount, token, base_amount, mint.shares_minted,
            " (bootstrap)" if mint.bootstrap else "",
            mint.state.total_base_assets, mint.state.total_shares,
        )
        return mint.shares_minted

    def withdraw(
        self,
        owner: str,
        shares: int,
        recipient: str,
        token: str,
        slippage_bps: Optional[int] = None,
    ) -> int:
        """Withdraw: burn shares owner, выплата token получателю.

        Args:
            owner: владелец shares
            shares: количество shares к сжиганию
            recipient: получатель выплаты
            token: токен выплаты
            slippage_bps: допустимый slippage base -> token
                (None -> withdraw_slippage_bps из конфигурации)

        Returns:
            Фактически выплаченная сумма token

        Raises:
            UnsupportedToken, ZeroAmount, InsufficientShares,
            ConversionFailed, SlippageExceeded
        """
        with self._lock:
            tracker = OperationTracker(OperationKind.WITHDRAW, owner, token, shares)
            state = self._state
            committed = False

            try:
                # 1. VALIDATING
                self._validate_request(token, shares)
                available = state.share_balance_of(owner)
                if available < shares:
                    raise InsufficientShares(owner, shares, available)

                # 2. ACCOUNTING
                tracker.advance(OperationStage.ACCOUNTING)
                burn = self.ledger.burn(state, owner, shares)

                # 3. SETTLING: снапшот с burn сохраняется до выплаты,
                # при отказе выплаты восстанавливается исходный
                tracker.advance(OperationStage.SETTLING)
                self._commit(burn.state)
                committed = True

                conversion = self.gateway.from_base(token, burn.base_owed, slippage_bps)
                if not conversion.identity:
                    self.custody.record_conversion(
                        self.gateway.base_asset, burn.base_owed, token, conversion.amount_out
                    )
                self.custody.push(token, recipient, conversion.amount_out)
            except Exception as exc:
                self._fail(tracker, exc)
                if committed:
                    self._rollback(state)
                raise

            receipt = tracker.done(
                amount_out=conversion.amount_out,
                shares_delta=-shares,
                base_amount=burn.base_owed,
                snapshot_id=burn.state.snapshot_id,
            )
            self._last_receipt = receipt

        logger.info(
            "Withdraw: %s burned %d shares (%d base) -> %d %s to %s; "
            "total_assets=%d total_shares=%d",
            owner, shares, burn.base_owed, conversion.amount_out, token, recipient,
            burn.state.total_base_assets, burn.state.total_shares,
        )
        return conversion.amount_out

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _validate_request(self, token: str, amount: int) -> None:
        if not self.registry.is_accepted(token):
            raise UnsupportedToken(token)
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValueError(f"amount must be an integer, got {type(amount).__name__}")
        if amount <= 0:
            raise ZeroAmount()

    def _commit(self, new_state: PoolState) -> None:
        # Store пишется до подмены снапшота: при ошибке записи коммита нет
        if self.store is not None:
            self.store.save(new_state)
        self._state = new_state

    def _rollback(self, previous: PoolState) -> None:
        self._state = previous
        if self.store is not None:
            self.store.save(previous)
        logger.warning("Rolled back pool snapshot to %d", previous.snapshot_id)

    def _fail(self, tracker: OperationTracker, exc: Exception) -> None:
        reason = getattr(exc, "reason", type(exc).__name__)
        receipt = tracker.fail(reason, str(exc))
        self._last_receipt = receipt
        logger.warning("%s", receipt.details)

    def _refund_deposit(
        self,
        depositor: str,
        token: str,
        amount: int,
        conversion: Optional[ConversionResult],
    ) -> None:
        if conversion is None or conversion.identity:
            self.custody.push(token, depositor, amount)
            return

        # Обмен уже исполнен: возвращаем фактически полученный base asset
        base = self.gateway.base_asset
        self.custody.push(base, depositor, conversion.amount_out)
        logger.warning(
            "Deposit refund after executed conversion: returned %d %s instead of %d %s to %s",
            conversion.amount_out, base, amount, token, depositor,
        )
