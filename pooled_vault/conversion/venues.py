"""Swap venues — внешний механизм обмена токенов.

SwapVenue: протокол, который engine ожидает от venue:
- quote(): ожидаемый выход без мутации состояния venue
- swap(): исполнение с минимально допустимым выходом

Контракт ошибок venue:
- SlippageExceeded, если выход ниже min_amount_out
- ValueError / ArithmeticError: venue не может исполнить обмен
  (нет пула, нет ликвидности); Conversion Gateway оборачивает их в ConversionFailed

ConstantProductVenue: in-memory reference realization (x * y = k с fee)
для симуляций и тестов, не production-интеграция.
"""

from dataclasses import dataclass
from typing import Protocol

from pooled_vault.core.errors import SlippageExceeded
from pooled_vault.core.math.share_math import (
    BPS_DENOMINATOR,
    validate_bps,
    validate_positive_int,
    validate_uint,
)


class SwapVenue(Protocol):
    """Протокол внешнего swap venue."""

    def quote(self, token_in: str, token_out: str, amount_in: int) -> int:
        """Ожидаемый выход token_out за amount_in token_in."""
        ...

    def swap(self, token_in: str, token_out: str, amount_in: int, min_amount_out: int) -> int:
        """Исполнение обмена, возвращает фактический выход."""
        ...


@dataclass
class _Reserves:
    token_a: str
    token_b: str
    reserve_a: int
    reserve_b: int

    def oriented(self, token_in: str) -> tuple[int, int]:
        if token_in == self.token_a:
            return self.reserve_a, self.reserve_b
        return self.reserve_b, self.reserve_a

    def apply(self, token_in: str, amount_in: int, amount_out: int) -> None:
        if token_in == self.token_a:
            self.reserve_a += amount_in
            self.reserve_b -= amount_out
        else:
            self.reserve_b += amount_in
            self.reserve_a -= amount_out


class ConstantProductVenue:
    """In-memory constant-product venue: один пул на пару токенов.

    amount_out = floor(amount_in_with_fee * reserve_out
                       / (reserve_in * 10_000 + amount_in_with_fee))
    где amount_in_with_fee = amount_in * (10_000 - fee_bps)
    """

    def __init__(self, fee_bps: int = 30):
        validate_bps(fee_bps, "fee_bps", max_bps=BPS_DENOMINATOR - 1)
        self.fee_bps = fee_bps
        self._pools: dict[frozenset[str], _Reserves] = {}

    def add_pool(self, token_a: str, reserve_a: int, token_b: str, reserve_b: int) -> None:
        """Регистрация пула пары (или замена резервов существующего)."""
        if token_a == token_b:
            raise ValueError("Pool tokens must differ")
        validate_positive_int(reserve_a, "reserve_a")
        validate_positive_int(reserve_b, "reserve_b")
        self._pools[frozenset((token_a, token_b))] = _Reserves(
            token_a=token_a, token_b=token_b, reserve_a=reserve_a, reserve_b=reserve_b
        )

    def reserves(self, token_a: str, token_b: str) -> tuple[int, int]:
        """Резервы пула в порядке (token_a, token_b)."""
        return self._pool(token_a, token_b).oriented(token_a)

    def _pool(self, token_in: str, token_out: str) -> _Reserves:
        pool = self._pools.get(frozenset((token_in, token_out)))
        if pool is None or token_in == token_out:
            raise ValueError(f"No pool for pair {token_in!r}/{token_out!r}")
        return pool

    def quote(self, token_in: str, token_out: str, amount_in: int) -> int:
        validate_positive_int(amount_in, "amount_in")
        reserve_in, reserve_out = self._pool(token_in, token_out).oriented(token_in)

        amount_in_with_fee = amount_in * (BPS_DENOMINATOR - self.fee_bps)
        numerator = amount_in_with_fee * reserve_out
        denominator = reserve_in * BPS_DENOMINATOR + amount_in_with_fee
        amount_out = numerator // denominator
        if amount_out <= 0:
            raise ValueError("Input amount too small for pool reserves")
        return amount_out

    def swap(self, token_in: str, token_out: str, amount_in: int, min_amount_out: int) -> int:
        validate_uint(min_amount_out, "min_amount_out")
        amount_out = self.quote(token_in, token_out, amount_in)
        if amount_out < min_amount_out:
            raise SlippageExceeded(token_out, amount_out, min_amount_out)

        self._pool(token_in, token_out).apply(token_in, amount_in, amount_out)
        return amount_out
