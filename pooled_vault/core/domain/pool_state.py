"""
PoolState — Модель состояния пула

Immutable Pydantic модель, представляющая снапшот share ledger:
- totals пула (total_base_assets, total_shares)
- Depositor Records (share_balances)
- метаданные снапшота (schema_version, snapshot_id)

Полная совместимость с JSON Schema (core/contracts/schema/pool_state.json).

Снапшот никогда не мутируется: каждая операция строит новый экземпляр,
а Vault Orchestrator атомарно подменяет ссылку на текущий снапшот.
"""

from decimal import Decimal
from typing import Mapping

from pydantic import BaseModel, Field, field_validator, model_validator

from pooled_vault.core.math import share_math

POOL_STATE_SCHEMA_VERSION = "1"


class PoolState(BaseModel):
    """
    Снапшот состояния пула.

    Инвариант: sum(share_balances.values()) == total_shares.
    Записи с нулевым балансом допустимы: Depositor Record не удаляется.
    """

    # Метаданные
    schema_version: str = Field(
        POOL_STATE_SCHEMA_VERSION, pattern="^1$", description="Версия схемы снапшота"
    )
    snapshot_id: int = Field(0, ge=0, description="Монотонный идентификатор снапшота")
    base_asset: str = Field(..., min_length=1, description="token_id base asset пула")

    # Totals
    total_base_assets: int = Field(0, ge=0, description="Base asset в пуле (минимальные единицы)")
    total_shares: int = Field(0, ge=0, description="Сумма всех share балансов")

    # Depositor Records
    share_balances: dict[str, int] = Field(
        default_factory=dict, description="Баланс shares по depositor"
    )

    model_config = {"frozen": True}

    @field_validator("share_balances")
    @classmethod
    def validate_balances_non_negative(cls, v: dict[str, int]) -> dict[str, int]:
        for depositor, balance in v.items():
            if not depositor:
                raise ValueError("depositor key cannot be empty")
            if balance < 0:
                raise ValueError(f"share balance of {depositor!r} is negative: {balance}")
        return v

    @model_validator(mode="after")
    def validate_share_sum(self) -> "PoolState":
        """Core invariant: сумма балансов равна total_shares."""
        balance_sum = sum(self.share_balances.values())
        if balance_sum != self.total_shares:
            raise ValueError(
                f"sum of share balances {balance_sum} != total_shares {self.total_shares}"
            )
        return self

    @classmethod
    def empty(cls, base_asset: str) -> "PoolState":
        """Пустой пул: первый deposit пойдёт по bootstrap 1:1."""
        return cls(base_asset=base_asset)

    def share_balance_of(self, depositor: str) -> int:
        """Баланс shares depositor (0 для неизвестного)."""
        return self.share_balances.get(depositor, 0)

    def has_depositor(self, depositor: str) -> bool:
        return depositor in self.share_balances

    @property
    def is_degenerate(self) -> bool:
        """Нет base assets, но shares в обращении."""
        return self.total_base_assets == 0 and self.total_shares > 0

    @property
    def price_per_share(self) -> Decimal:
        return share_math.price_per_share(self.total_base_assets, self.total_shares)

    def with_changes(
        self,
        total_base_assets: int,
        total_shares: int,
        balance_updates: Mapping[str, int],
    ) -> "PoolState":
        """
        Новый снапшот с применёнными изменениями и snapshot_id + 1.

        Конструктор валидирует инварианты заново, поэтому ошибка
        в расчёте delta не может породить несогласованный снапшот.

        Args:
            total_base_assets: новые total_base_assets
            total_shares: новые total_shares
            balance_updates: новые абсолютные балансы затронутых depositors
        """
        balances = dict(self.share_balances)
        balances.update(balance_updates)
        return PoolState(
            schema_version=self.schema_version,
            snapshot_id=self.snapshot_id + 1,
            base_asset=self.base_asset,
            total_base_assets=total_base_assets,
            total_shares=total_shares,
            share_balances=balances,
        )
