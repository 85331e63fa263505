"""
Share Math — целочисленные примитивы share-accounting

Модуль обеспечивает точную целочисленную арифметику для mint/burn:
- mul_div с явным направлением округления (down/up)
- Конверсия assets <-> shares по пропорциональной формуле
- Basis points (bps) для slippage tolerance
- Валидация целочисленных сумм (uint-семантика)

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Никаких float в расчётах сумм, только int (произвольной точности)
2. Округление по умолчанию floor: остаток всегда остаётся в пуле
3. Деление на ноль никогда не происходит молча (ValueError)
4. bool не считается допустимой суммой, даже будучи подклассом int
"""

from decimal import Decimal
from typing import Final

# =============================================================================
# КОНСТАНТЫ
# =============================================================================

# Знаменатель basis points: 10_000 bps = 100%
BPS_DENOMINATOR: Final[int] = 10_000

# Максимальная допустимая tolerance (100%)
MAX_BPS: Final[int] = BPS_DENOMINATOR


# =============================================================================
# ВАЛИДАЦИЯ
# =============================================================================


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_uint(value: int, name: str) -> None:
    """
    Валидация, что значение является неотрицательным целым.

    Args:
        value: Проверяемое значение
        name: Имя параметра (для сообщения об ошибке)

    Raises:
        ValueError: Если value не int или value < 0
    """
    if not _is_int(value):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")

    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


def validate_positive_int(value: int, name: str) -> None:
    """
    Валидация, что значение является строго положительным целым.

    Raises:
        ValueError: Если value не int или value <= 0
    """
    validate_uint(value, name)

    if value == 0:
        raise ValueError(f"{name} must be positive, got {value}")


def validate_bps(value: int, name: str, max_bps: int = MAX_BPS) -> None:
    """
    Валидация basis points в диапазоне [0, max_bps].

    Raises:
        ValueError: Если value вне диапазона
    """
    validate_uint(value, name)

    if value > max_bps:
        raise ValueError(f"{name} must be <= {max_bps} bps, got {value}")


# =============================================================================
# MUL-DIV
# =============================================================================


def mul_div_down(x: int, y: int, denominator: int) -> int:
    """
    floor(x * y / denominator) без промежуточной потери точности.

    Examples:
        >>> mul_div_down(500, 1000, 1000)
        500
        >>> mul_div_down(1, 2, 3)
        0
    """
    validate_uint(x, "x")
    validate_uint(y, "y")
    validate_positive_int(denominator, "denominator")

    return (x * y) // denominator


def mul_div_up(x: int, y: int, denominator: int) -> int:
    """
    ceil(x * y / denominator).

    Examples:
        >>> mul_div_up(1, 2, 3)
        1
        >>> mul_div_up(3, 2, 3)
        2
    """
    validate_uint(x, "x")
    validate_uint(y, "y")
    validate_positive_int(denominator, "denominator")

    return -((-x * y) // denominator)


# =============================================================================
# SHARES <-> ASSETS
# =============================================================================


def to_shares_down(assets: int, total_assets: int, total_shares: int) -> int:
    """
    Пропорциональная конверсия assets -> shares с округлением вниз.

    Формула: floor(assets * total_shares / total_assets)

    Bootstrap (total_shares == 0) и вырожденное состояние
    (total_assets == 0) обрабатываются вызывающим кодом (ShareLedger).

    Raises:
        ValueError: Если total_assets == 0
    """
    return mul_div_down(assets, total_shares, total_assets)


def to_assets_down(shares: int, total_assets: int, total_shares: int) -> int:
    """
    Пропорциональная конверсия shares -> assets с округлением вниз.

    Формула: floor(shares * total_assets / total_shares)

    Raises:
        ValueError: Если total_shares == 0
    """
    return mul_div_down(shares, total_assets, total_shares)


def price_per_share(total_assets: int, total_shares: int) -> Decimal:
    """
    Текущая стоимость одной share в единицах base asset.

    Для пустого пула (total_shares == 0) возвращает bootstrap-курс 1.
    """
    validate_uint(total_assets, "total_assets")
    validate_uint(total_shares, "total_shares")

    if total_shares == 0:
        return Decimal(1)
    return Decimal(total_assets) / Decimal(total_shares)


# =============================================================================
# SLIPPAGE
# =============================================================================


def apply_slippage_floor(expected_amount: int, slippage_bps: int) -> int:
    """
    Минимально допустимый выход при заданной tolerance.

    Формула: floor(expected_amount * (10_000 - slippage_bps) / 10_000)

    Examples:
        >>> apply_slippage_floor(1_000, 100)  # 1%
        990
        >>> apply_slippage_floor(1_000, 0)
        1000
    """
    validate_uint(expected_amount, "expected_amount")
    validate_bps(slippage_bps, "slippage_bps")

    return mul_div_down(expected_amount, BPS_DENOMINATOR - slippage_bps, BPS_DENOMINATOR)


def realized_slippage_bps(expected_amount: int, realized_amount: int) -> int:
    """
    Фактический slippage в bps относительно ожидаемого выхода.

    Округление вверх: потеря никогда не занижается.
    Если realized >= expected, slippage = 0.
    """
    validate_uint(expected_amount, "expected_amount")
    validate_uint(realized_amount, "realized_amount")

    if expected_amount == 0 or realized_amount >= expected_amount:
        return 0
    return mul_div_up(expected_amount - realized_amount, BPS_DENOMINATOR, expected_amount)
