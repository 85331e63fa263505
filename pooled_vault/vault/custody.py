"""Token Custody — перемещение токенов между участниками и vault.

TokenCustody: протокол, который Vault Orchestrator ожидает от внешнего
token-transfer механизма (approve/transferFrom и т.п. вне scope).

InMemoryCustody: in-memory reference realization: балансы по (token, holder),
используется в симуляциях и тестах.
"""

from typing import Protocol

from pooled_vault.core.math.share_math import validate_positive_int, validate_uint


class TokenCustody(Protocol):
    """Протокол token custody vault."""

    vault_account: str

    def pull(self, token: str, owner: str, amount: int) -> None:
        """Перевод amount token от owner в vault (escrow)."""
        ...

    def push(self, token: str, recipient: str, amount: int) -> None:
        """Перевод amount token из vault получателю."""
        ...

    def record_conversion(self, token_in: str, amount_in: int, token_out: str, amount_out: int) -> None:
        """Отражение обмена, исполненного venue, в балансах vault."""
        ...

    def balance_of(self, token: str, holder: str) -> int:
        ...


class InMemoryCustody:
    """In-memory custody: балансы всех участников в одном dict."""

    def __init__(self, vault_account: str = "vault"):
        self.vault_account = vault_account
        self._balances: dict[tuple[str, str], int] = {}

    def balance_of(self, token: str, holder: str) -> int:
        return self._balances.get((token, holder), 0)

    def mint(self, token: str, holder: str, amount: int) -> None:
        """Начисление токенов участнику (funding для симуляций)."""
        validate_positive_int(amount, "amount")
        self._credit(token, holder, amount)

    def pull(self, token: str, owner: str, amount: int) -> None:
        self._transfer(token, owner, self.vault_account, amount)

    def push(self, token: str, recipient: str, amount: int) -> None:
        self._transfer(token, self.vault_account, recipient, amount)

    def record_conversion(self, token_in: str, amount_in: int, token_out: str, amount_out: int) -> None:
        validate_uint(amount_out, "amount_out")
        self._debit(token_in, self.vault_account, amount_in)
        self._credit(token_out, self.vault_account, amount_out)

    def _transfer(self, token: str, source: str, target: str, amount: int) -> None:
        validate_positive_int(amount, "amount")
        self._debit(token, source, amount)
        self._credit(token, target, amount)

    def _debit(self, token: str, holder: str, amount: int) -> None:
        balance = self.balance_of(token, holder)
        if balance < amount:
            raise ValueError(
                f"{holder!r} holds {balance} {token}, cannot transfer {amount}"
            )
        self._balances[(token, holder)] = balance - amount

    def _credit(self, token: str, holder: str, amount: int) -> None:
        self._balances[(token, holder)] = self.balance_of(token, holder) + amount
