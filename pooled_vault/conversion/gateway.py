"""Conversion Gateway — нормализация сумм в base asset и обратно.

Направления:
- to_base(): token -> base (deposit path)
- from_base(): base -> token (withdrawal path)

Диспетчеризация полиморфная: для каждого токена один раз при построении
gateway выбирается реализация Conversion:
- IdentityConversion: base asset, тождественная конверсия без затрат
- SwapConversion: обмен через внешний SwapVenue

Guards минимального выхода (оба направления):
- withdrawal: min_out = floor(quote * (10_000 - slippage_bps) / 10_000)
- deposit: min_base_out от вызывающего, иначе та же формула
  с deposit_slippage_bps из конфигурации
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from pooled_vault.conversion.venues import SwapVenue
from pooled_vault.core.errors import ConversionFailed, SlippageExceeded, VaultError
from pooled_vault.core.math.share_math import (
    MAX_BPS,
    apply_slippage_floor,
    realized_slippage_bps,
    validate_bps,
    validate_positive_int,
    validate_uint,
)
from pooled_vault.registry.asset_registry import AssetRegistry
from pooled_vault.utils.logger_utils import get_logger

logger = get_logger(__name__)


# =============================================================================
# CONFIG
# =============================================================================


@dataclass(frozen=True)
class GatewayConfig:
    """Конфигурация Conversion Gateway.

    Все tolerance в basis points (100 bps = 1%).
    """

    # Tolerance по умолчанию для withdrawal (base -> token)
    withdraw_slippage_bps: int = 100

    # Tolerance по умолчанию для deposit (token -> base), если вызывающий
    # не передал явный min_base_out
    deposit_slippage_bps: int = 100

    # Верхняя граница tolerance, которую может запросить вызывающий
    max_slippage_bps: int = MAX_BPS

    def __post_init__(self) -> None:
        validate_bps(self.max_slippage_bps, "max_slippage_bps")
        validate_bps(self.withdraw_slippage_bps, "withdraw_slippage_bps", self.max_slippage_bps)
        validate_bps(self.deposit_slippage_bps, "deposit_slippage_bps", self.max_slippage_bps)


# =============================================================================
# RESULT
# =============================================================================


@dataclass(frozen=True)
class ConversionResult:
    """Результат конверсии."""

    token_in: str
    token_out: str
    amount_in: int
    amount_out: int

    # Quote venue до исполнения и применённый guard
    expected_out: int
    min_amount_out: int

    # True для base -> base (обмен не исполнялся)
    identity: bool

    @property
    def slippage_bps(self) -> int:
        """Фактический slippage относительно quote."""
        return realized_slippage_bps(self.expected_out, self.amount_out)


# =============================================================================
# CONVERSIONS
# =============================================================================


class Conversion(ABC):
    """Конверсия одного токена в base asset и обратно."""

    def __init__(self, token: str, base_asset: str):
        self.token = token
        self.base_asset = base_asset

    @property
    @abstractmethod
    def is_identity(self) -> bool: ...

    @abstractmethod
    def quote_to_base(self, amount_in: int) -> int: ...

    @abstractmethod
    def quote_from_base(self, amount_in_base: int) -> int: ...

    @abstractmethod
    def execute_to_base(self, amount_in: int, min_base_out: int) -> int: ...

    @abstractmethod
    def execute_from_base(self, amount_in_base: int, min_amount_out: int) -> int: ...


class IdentityConversion(Conversion):
    """Base asset: конверсия тождественна, guard всегда выполнен."""

    @property
    def is_identity(self) -> bool:
        return True

    def quote_to_base(self, amount_in: int) -> int:
        return amount_in

    def quote_from_base(self, amount_in_base: int) -> int:
        return amount_in_base

    def execute_to_base(self, amount_in: int, min_base_out: int) -> int:
        return amount_in

    def execute_from_base(self, amount_in_base: int, min_amount_out: int) -> int:
        return amount_in_base


class SwapConversion(Conversion):
    """Конверсия через внешний SwapVenue.

    Ошибки venue, не являющиеся VaultError, оборачиваются в ConversionFailed
    с исходным исключением в __cause__.
    """

    def __init__(self, token: str, base_asset: str, venue: SwapVenue):
        super().__init__(token, base_asset)
        self.venue = venue

    @property
    def is_identity(self) -> bool:
        return False

    def quote_to_base(self, amount_in: int) -> int:
        return self._call(self.token, self.base_asset, self.venue.quote, amount_in)

    def quote_from_base(self, amount_in_base: int) -> int:
        return self._call(self.base_asset, self.token, self.venue.quote, amount_in_base)

    def execute_to_base(self, amount_in: int, min_base_out: int) -> int:
        return self._call(self.token, self.base_asset, self.venue.swap, amount_in, min_base_out)

    def execute_from_base(self, amount_in_base: int, min_amount_out: int) -> int:
        return self._call(self.base_asset, self.token, self.venue.swap, amount_in_base, min_amount_out)

    @staticmethod
    def _call(token_in: str, token_out: str, method, *args) -> int:
        try:
            amount_out = method(token_in, token_out, *args)
        except VaultError:
            raise
        except (ValueError, ArithmeticError, LookupError) as exc:
            raise ConversionFailed(token_in, token_out, str(exc)) from exc

        try:
            validate_uint(amount_out, "amount_out")
        except ValueError as exc:
            raise ConversionFailed(token_in, token_out, f"venue returned {amount_out!r}") from exc
        return amount_out


# =============================================================================
# GATEWAY
# =============================================================================


class ConversionGateway:
    """Conversion Gateway поверх Asset Registry и SwapVenue."""

    def __init__(
        self,
        registry: AssetRegistry,
        venue: Optional[SwapVenue] = None,
        config: Optional[GatewayConfig] = None,
    ):
        """
        Args:
            registry: Asset Registry пула
            venue: swap venue (обязателен, если есть не-base токены)
            config: конфигурация gateway (опционально, используется default)

        Raises:
            ValueError: если в registry есть не-base токены, а venue не передан
        """
        self.registry = registry
        self.venue = venue
        self.config = config or GatewayConfig()

        base = registry.base_asset.token_id
        self._conversions: dict[str, Conversion] = {}
        for descriptor in registry.tokens():
            if descriptor.is_base_asset:
                self._conversions[descriptor.token_id] = IdentityConversion(descriptor.token_id, base)
            elif venue is None:
                raise ValueError(
                    f"Token {descriptor.token_id!r} requires a swap venue, none configured"
                )
            else:
                self._conversions[descriptor.token_id] = SwapConversion(descriptor.token_id, base, venue)

    @property
    def base_asset(self) -> str:
        return self.registry.base_asset.token_id

    def conversion_for(self, token: str) -> Conversion:
        """
        Raises:
            UnsupportedToken: если токен не зарегистрирован
        """
        self.registry.descriptor(token)
        return self._conversions[token]

    # -------------------------------------------------------------------------
    # Quotes (read-only)
    # -------------------------------------------------------------------------

    def quote_to_base(self, token: str, amount_in: int) -> int:
        validate_positive_int(amount_in, "amount_in")
        return self.conversion_for(token).quote_to_base(amount_in)

    def quote_from_base(self, token: str, amount_in_base: int) -> int:
        validate_positive_int(amount_in_base, "amount_in_base")
        return self.conversion_for(token).quote_from_base(amount_in_base)

    def guaranteed_base_out(
        self, token: str, amount_in: int, min_base_out: Optional[int] = None
    ) -> int:
        """Нижняя граница выхода to_base() до исполнения обмена.

        Identity: amount_in. Swap: min_base_out вызывающего, иначе quote
        с deposit_slippage_bps. Успешный to_base() с min_base_out, равным
        этой границе, вернёт не меньше.
        """
        validate_positive_int(amount_in, "amount_in")
        conversion = self.conversion_for(token)
        if conversion.is_identity:
            return amount_in
        if min_base_out is not None:
            validate_uint(min_base_out, "min_base_out")
            return min_base_out
        return apply_slippage_floor(
            conversion.quote_to_base(amount_in), self.config.deposit_slippage_bps
        )

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def to_base(
        self, token: str, amount_in: int, min_base_out: Optional[int] = None
    ) -> ConversionResult:
        """Конверсия token -> base (deposit path).

        Args:
            token: входной токен
            amount_in: сумма входного токена
            min_base_out: минимально допустимый выход в base asset;
                None -> quote с deposit_slippage_bps из конфигурации

        Returns:
            ConversionResult с фактическим выходом в base asset

        Raises:
            UnsupportedToken, ConversionFailed, SlippageExceeded
        """
        validate_positive_int(amount_in, "amount_in")
        conversion = self.conversion_for(token)

        expected = conversion.quote_to_base(amount_in)
        if min_base_out is None:
            min_out = apply_slippage_floor(expected, self.config.deposit_slippage_bps)
        else:
            validate_uint(min_base_out, "min_base_out")
            min_out = min_base_out

        if conversion.is_identity:
            if amount_in < min_out:
                raise SlippageExceeded(token, amount_in, min_out)
            return self._result(token, self.base_asset, amount_in, amount_in, expected, min_out, True)

        amount_out = conversion.execute_to_base(amount_in, min_out)
        self._check_min_out(self.base_asset, amount_out, min_out)

        logger.debug(
            "Converted %d %s -> %d %s (expected %d, min %d)",
            amount_in, token, amount_out, self.base_asset, expected, min_out,
        )
        return self._result(token, self.base_asset, amount_in, amount_out, expected, min_out, False)

    def from_base(
        self, token: str, amount_in_base: int, slippage_bps: Optional[int] = None
    ) -> ConversionResult:
        """Конверсия base -> token (withdrawal path).

        Args:
            token: выходной токен
            amount_in_base: сумма base asset
            slippage_bps: допустимый slippage относительно quote;
                None -> withdraw_slippage_bps из конфигурации

        Returns:
            ConversionResult с фактическим выходом в token

        Raises:
            UnsupportedToken, ConversionFailed, SlippageExceeded
            ValueError: если slippage_bps вне [0, max_slippage_bps]
        """
        validate_positive_int(amount_in_base, "amount_in_base")
        if slippage_bps is None:
            slippage_bps = self.config.withdraw_slippage_bps
        validate_bps(slippage_bps, "slippage_bps", self.config.max_slippage_bps)

        conversion = self.conversion_for(token)

        if conversion.is_identity:
            return self._result(
                self.base_asset, token, amount_in_base, amount_in_base, amount_in_base, amount_in_base, True
            )

        expected = conversion.quote_from_base(amount_in_base)
        min_out = apply_slippage_floor(expected, slippage_bps)

        amount_out = conversion.execute_from_base(amount_in_base, min_out)
        self._check_min_out(token, amount_out, min_out)

        logger.debug(
            "Converted %d %s -> %d %s (expected %d, min %d)",
            amount_in_base, self.base_asset, amount_out, token, expected, min_out,
        )
        return self._result(self.base_asset, token, amount_in_base, amount_out, expected, min_out, False)

    @staticmethod
    def _check_min_out(token_out: str, amount_out: int, min_out: int) -> None:
        # venue может не проверять min_amount_out сам
        if amount_out < min_out:
            raise SlippageExceeded(token_out, amount_out, min_out)

    @staticmethod
    def _result(
        token_in: str,
        token_out: str,
        amount_in: int,
        amount_out: int,
        expected_out: int,
        min_amount_out: int,
        identity: bool,
    ) -> ConversionResult:
        return ConversionResult(
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            amount_out=amount_out,
            expected_out=expected_out,
            min_amount_out=min_amount_out,
            identity=identity,
        )
