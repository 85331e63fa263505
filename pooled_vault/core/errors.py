"""
Vault Errors — таксономия ошибок операций vault

Все ошибки терминальны для операции, которая их вызвала:
- никогда не ретраятся внутри engine (retry policy на стороне вызывающего)
- никогда не поглощаются
- после любой ошибки Pool State остаётся ровно таким, каким был до операции

Для ошибок валидации аргументов конструкторов (registry, config) используется ValueError,
а не VaultError: они не относятся к операциям deposit/withdraw.
"""

from typing import Optional


class VaultError(Exception):
    """
    Базовая ошибка операции vault.

    Attributes:
        reason: машиночитаемый код причины (snake_case), попадает в OperationReceipt
    """

    reason: str = "vault_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedToken(VaultError):
    """Токен отсутствует в Asset Registry."""

    reason = "unsupported_token"

    def __init__(self, token: str):
        super().__init__(f"Token {token!r} is not accepted by the vault")
        self.token = token


class ZeroAmount(VaultError):
    """Нулевая сумма на входе или нулевой результат конверсии shares/assets."""

    reason = "zero_amount"

    def __init__(self, message: str = "Amount must be greater than zero"):
        super().__init__(message)


class InsufficientShares(VaultError):
    """Depositor пытается сжечь больше shares, чем у него есть."""

    reason = "insufficient_shares"

    def __init__(self, depositor: str, requested: int, available: int):
        super().__init__(
            f"Depositor {depositor!r} requested {requested} shares, "
            f"but holds only {available}"
        )
        self.depositor = depositor
        self.requested = requested
        self.available = available


class SlippageExceeded(VaultError):
    """Фактический выход конверсии ниже минимально допустимого."""

    reason = "slippage_exceeded"

    def __init__(self, token_out: str, amount_out: int, min_amount_out: int):
        super().__init__(
            f"Conversion into {token_out!r} returned {amount_out}, "
            f"below the minimum acceptable {min_amount_out}"
        )
        self.token_out = token_out
        self.amount_out = amount_out
        self.min_amount_out = min_amount_out


class ConversionFailed(VaultError):
    """
    Swap venue не смог исполнить конверсию.

    Например: нет пула для пары токенов, недостаточная ликвидность.
    Исходное исключение venue доступно через __cause__.
    """

    reason = "conversion_failed"

    def __init__(self, token_in: str, token_out: str, detail: Optional[str] = None):
        message = f"Conversion {token_in!r} -> {token_out!r} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.token_in = token_in
        self.token_out = token_out


class DegenerateState(VaultError):
    """
    Вырожденное состояние пула: total_base_assets == 0 при total_shares > 0.

    Пропорциональная формула mint делит на total_base_assets, поэтому
    при политике FAIL_CLOSED операция отклоняется.
    """

    reason = "degenerate_state"

    def __init__(self, total_base_assets: int, total_shares: int):
        super().__init__(
            f"Degenerate pool state: total_base_assets={total_base_assets}, "
            f"total_shares={total_shares}"
        )
        self.total_base_assets = total_base_assets
        self.total_shares = total_shares
