"""Share Ledger — ядро share-accounting.

Mint на deposit:
- total_shares == 0 -> minted = deposit_base_amount (bootstrap 1:1)
- иначе -> minted = floor(deposit * total_shares / total_base_assets),
  totals берутся ДО добавления deposit

Burn на withdrawal:
- balance >= shares, иначе InsufficientShares
- base_owed = floor(shares * total_base_assets / total_shares), totals ДО burn

Floor на обоих направлениях: остаток округления всегда остаётся в пуле,
total_base_assets никогда не опускается ниже суммы, которую пул может выплатить.

Вырожденное состояние (total_base_assets == 0, total_shares > 0) управляется
DegeneratePolicy: FAIL_CLOSED (DegenerateState) или REBOOTSTRAP (1:1).

Ledger не хранит состояние: принимает PoolState и возвращает новый PoolState.
Входной снапшот никогда не мутируется.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pooled_vault.core.domain.pool_state import PoolState
from pooled_vault.core.errors import DegenerateState, InsufficientShares, ZeroAmount
from pooled_vault.core.math.share_math import to_assets_down, to_shares_down


class DegeneratePolicy(str, Enum):
    """Поведение mint при total_base_assets == 0 и total_shares > 0."""

    FAIL_CLOSED = "FAIL_CLOSED"
    REBOOTSTRAP = "REBOOTSTRAP"


@dataclass(frozen=True)
class LedgerConfig:
    """Конфигурация Share Ledger."""

    degenerate_policy: DegeneratePolicy = DegeneratePolicy.FAIL_CLOSED


@dataclass(frozen=True)
class MintResult:
    """Результат mint."""

    depositor: str
    base_amount: int
    shares_minted: int
    bootstrap: bool
    state: PoolState


@dataclass(frozen=True)
class BurnResult:
    """Результат burn."""

    depositor: str
    shares_burned: int
    base_owed: int
    state: PoolState


class ShareLedger:
    """Share Ledger: вычисление и применение mint/burn к PoolState."""

    def __init__(self, config: Optional[LedgerConfig] = None):
        self.config = config or LedgerConfig()

    # -------------------------------------------------------------------------
    # Conversions (read-only)
    # -------------------------------------------------------------------------

    def is_bootstrap(self, state: PoolState) -> bool:
        """Следующий mint пойдёт по курсу 1:1."""
        if state.total_shares == 0:
            return True
        return state.is_degenerate and self.config.degenerate_policy == DegeneratePolicy.REBOOTSTRAP

    def check_degenerate(self, state: PoolState) -> None:
        """
        Raises:
            DegenerateState: если пул вырожден и политика FAIL_CLOSED
        """
        if state.is_degenerate and self.config.degenerate_policy == DegeneratePolicy.FAIL_CLOSED:
            raise DegenerateState(state.total_base_assets, state.total_shares)

    def convert_to_shares(self, state: PoolState, base_amount: int) -> int:
        """Shares за base_amount при текущем состоянии (floor).

        Raises:
            DegenerateState: вырожденный пул при FAIL_CLOSED
        """
        self.check_degenerate(state)
        if self.is_bootstrap(state):
            return base_amount
        return to_shares_down(base_amount, state.total_base_assets, state.total_shares)

    def convert_to_assets(self, state: PoolState, shares: int) -> int:
        """Base asset за shares при текущем состоянии (floor).

        Для пустого пула курс 1:1.
        """
        if state.total_shares == 0:
            return shares
        return to_assets_down(shares, state.total_base_assets, state.total_shares)

    def preview_mint(self, state: PoolState, base_amount: int) -> int:
        """Сколько shares получит deposit, с теми же проверками, что и mint."""
        return self._shares_for_deposit(state, base_amount)

    def preview_burn(self, state: PoolState, depositor: str, shares: int) -> int:
        """Сколько base asset вернёт burn, с теми же проверками, что и burn."""
        return self._base_for_burn(state, depositor, shares)

    # -------------------------------------------------------------------------
    # Mutations (возвращают новый снапшот)
    # -------------------------------------------------------------------------

    def mint(self, state: PoolState, depositor: str, base_amount: int) -> MintResult:
        """Mint shares на deposit base_amount.

        Args:
            state: текущий снапшот (не мутируется)
            depositor: владелец Depositor Record
            base_amount: сумма deposit в base asset (после конверсии)

        Returns:
            MintResult с новым снапшотом

        Raises:
            ZeroAmount: base_amount == 0 или deposit даёт 0 shares
            DegenerateState: вырожденный пул при FAIL_CLOSED
        """
        bootstrap = self.is_bootstrap(state)
        minted = self._shares_for_deposit(state, base_amount)

        new_state = state.with_changes(
            total_base_assets=state.total_base_assets + base_amount,
            total_shares=state.total_shares + minted,
            balance_updates={depositor: state.share_balance_of(depositor) + minted},
        )
        return MintResult(
            depositor=depositor,
            base_amount=base_amount,
            shares_minted=minted,
            bootstrap=bootstrap,
            state=new_state,
        )

    def burn(self, state: PoolState, depositor: str, shares: int) -> BurnResult:
        """Burn shares depositor на withdrawal.

        Returns:
            BurnResult с base_owed и новым снапшотом

        Raises:
            ZeroAmount: shares == 0 или burn возвращает 0 base asset
            InsufficientShares: баланс depositor меньше shares
        """
        base_owed = self._base_for_burn(state, depositor, shares)

        new_state = state.with_changes(
            total_base_assets=state.total_base_assets - base_owed,
            total_shares=state.total_shares - shares,
            balance_updates={depositor: state.share_balance_of(depositor) - shares},
        )
        return BurnResult(
            depositor=depositor,
            shares_burned=shares,
            base_owed=base_owed,
            state=new_state,
        )

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _shares_for_deposit(self, state: PoolState, base_amount: int) -> int:
        if base_amount <= 0:
            raise ZeroAmount()

        minted = self.convert_to_shares(state, base_amount)
        if minted == 0:
            raise ZeroAmount(
                f"Deposit of {base_amount} base units mints zero shares "
                f"(total_base_assets={state.total_base_assets}, total_shares={state.total_shares})"
            )
        return minted

    def _base_for_burn(self, state: PoolState, depositor: str, shares: int) -> int:
        if shares <= 0:
            raise ZeroAmount()

        available = state.share_balance_of(depositor)
        if available < shares:
            raise InsufficientShares(depositor, shares, available)

        # available > 0 гарантирует total_shares > 0
        base_owed = to_assets_down(shares, state.total_base_assets, state.total_shares)
        if base_owed == 0:
            raise ZeroAmount(
                f"Burning {shares} shares returns zero base units "
                f"(total_base_assets={state.total_base_assets}, total_shares={state.total_shares})"
            )
        return base_owed
