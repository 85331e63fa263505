"""PoolStateStore — durable JSON снапшот share ledger.

Формат документа задаёт контракт pool_state.json (JSON Schema), проверяется
и при сохранении, и при загрузке. Инвариант суммы балансов дополнительно
проверяет модель PoolState.

Запись атомарна: временный файл в том же каталоге + os.replace.
"""

import json
import os
import tempfile
from pathlib import Path

from pooled_vault.core.contracts import validate_pool_state
from pooled_vault.core.domain.pool_state import PoolState
from pooled_vault.utils.logger_utils import get_logger

logger = get_logger(__name__)


class PoolStateStore:
    """Файловое хранилище снапшота PoolState."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, state: PoolState) -> None:
        """
        Сохранение снапшота.

        Raises:
            ValidationError: если документ не соответствует схеме
            OSError: ошибка записи
        """
        data = state.model_dump(mode="json")
        validate_pool_state(data)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.debug("Saved pool snapshot %d to %s", state.snapshot_id, self.path)

    def load(self) -> PoolState:
        """
        Загрузка снапшота.

        Raises:
            FileNotFoundError: снапшот не существует
            json.JSONDecodeError: файл не является валидным JSON
            ValidationError (jsonschema): документ не соответствует схеме
            ValidationError (pydantic): нарушен инвариант PoolState
        """
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)

        validate_pool_state(data)
        state = PoolState.model_validate(data)

        logger.debug("Loaded pool snapshot %d from %s", state.snapshot_id, self.path)
        return state
