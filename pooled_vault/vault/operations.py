"""Operation state machine — стадии одной операции deposit/withdraw.

Переходы:
- VALIDATING -> CONVERTING -> ACCOUNTING -> SETTLING -> DONE (deposit)
- VALIDATING -> ACCOUNTING -> SETTLING -> DONE (withdrawal: конверсия в SETTLING)
- FAILED достижим из любой нетерминальной стадии

Каждая операция порождает OperationReceipt: аналог событий Deposit/Withdraw
с полным следом стадий и причиной отказа.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OperationKind(str, Enum):
    """Тип операции vault."""

    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"


class OperationStage(str, Enum):
    """Стадия операции.

    States:
    - VALIDATING: токен принят, сумма > 0, баланс shares достаточен
    - CONVERTING: token -> base (только deposit, пропускается для base asset)
    - ACCOUNTING: mint/burn в Share Ledger на рабочем снапшоте
    - SETTLING: withdrawal: base -> token и перевод получателю
    - DONE: рабочий снапшот закоммичен
    - FAILED: операция отменена, Pool State не изменён
    """

    VALIDATING = "VALIDATING"
    CONVERTING = "CONVERTING"
    ACCOUNTING = "ACCOUNTING"
    SETTLING = "SETTLING"
    DONE = "DONE"
    FAILED = "FAILED"


TERMINAL_STAGES = frozenset({OperationStage.DONE, OperationStage.FAILED})

_ALLOWED_TRANSITIONS: dict[OperationStage, frozenset[OperationStage]] = {
    OperationStage.VALIDATING: frozenset({OperationStage.CONVERTING, OperationStage.ACCOUNTING}),
    OperationStage.CONVERTING: frozenset({OperationStage.ACCOUNTING}),
    OperationStage.ACCOUNTING: frozenset({OperationStage.SETTLING}),
    OperationStage.SETTLING: frozenset({OperationStage.DONE}),
    OperationStage.DONE: frozenset(),
    OperationStage.FAILED: frozenset(),
}


@dataclass(frozen=True)
class OperationReceipt:
    """Результат операции vault."""

    kind: OperationKind
    stages: tuple[OperationStage, ...]

    depositor: str
    token: str
    amount_in: int

    # Результат (0 при FAILED)
    amount_out: int
    shares_delta: int
    base_amount: int

    # snapshot_id после коммита (None при FAILED)
    snapshot_id: Optional[int]

    # Диагностика
    failure_reason: Optional[str]
    details: str

    @property
    def succeeded(self) -> bool:
        return self.stages[-1] == OperationStage.DONE

    @property
    def final_stage(self) -> OperationStage:
        return self.stages[-1]


class OperationTracker:
    """Трекер стадий одной операции с проверкой допустимых переходов."""

    def __init__(self, kind: OperationKind, depositor: str, token: str, amount_in: int):
        self.kind = kind
        self.depositor = depositor
        self.token = token
        self.amount_in = amount_in
        self._stages: list[OperationStage] = [OperationStage.VALIDATING]

    @property
    def stage(self) -> OperationStage:
        return self._stages[-1]

    @property
    def stages(self) -> tuple[OperationStage, ...]:
        return tuple(self._stages)

    def advance(self, stage: OperationStage) -> None:
        """
        Raises:
            RuntimeError: недопустимый переход (ошибка в orchestrator)
        """
        if stage not in _ALLOWED_TRANSITIONS[self.stage]:
            raise RuntimeError(f"Illegal operation transition {self.stage.value} -> {stage.value}")
        self._stages.append(stage)

    def done(
        self, amount_out: int, shares_delta: int, base_amount: int, snapshot_id: int
    ) -> OperationReceipt:
        self.advance(OperationStage.DONE)
        return self._receipt(
            amount_out=amount_out,
            shares_delta=shares_delta,
            base_amount=base_amount,
            snapshot_id=snapshot_id,
            failure_reason=None,
            details=f"{self.kind.value} completed via {' -> '.join(s.value for s in self._stages)}",
        )

    def fail(self, reason: str, message: str) -> OperationReceipt:
        failed_at = self.stage
        if failed_at not in TERMINAL_STAGES:
            self._stages.append(OperationStage.FAILED)
        return self._receipt(
            amount_out=0,
            shares_delta=0,
            base_amount=0,
            snapshot_id=None,
            failure_reason=reason,
            details=f"{self.kind.value} failed at {failed_at.value}: {message}",
        )

    def _receipt(
        self,
        amount_out: int,
        shares_delta: int,
        base_amount: int,
        snapshot_id: Optional[int],
        failure_reason: Optional[str],
        details: str,
    ) -> OperationReceipt:
        return OperationReceipt(
            kind=self.kind,
            stages=self.stages,
            depositor=self.depositor,
            token=self.token,
            amount_in=self.amount_in,
            amount_out=amount_out,
            shares_delta=shares_delta,
            base_amount=base_amount,
            snapshot_id=snapshot_id,
            failure_reason=failure_reason,
            details=details,
        )
