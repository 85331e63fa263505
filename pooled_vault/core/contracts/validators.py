"""
Валидация документа pool_state против JSON Schema.

Schema проверяет форму документа PoolStateStore (типы, обязательные поля,
неотрицательные целые); инварианты снапшота проверяет модель PoolState.
"""

import json
from pathlib import Path
from typing import Any, Dict

import jsonschema
from jsonschema import Draft202012Validator


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """Загрузка и meta-валидация схем из каталога schema/ пакета."""

    def __init__(self, schema_dir: Path | None = None):
        self._schema_dir = schema_dir or Path(__file__).parent / "schema"
        if not self._schema_dir.exists():
            raise RuntimeError(f"Schema directory not found: {self._schema_dir}")
        self._schemas: Dict[str, Dict[str, Any]] = {}

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Raises:
            FileNotFoundError: нет файла <schema_name>.json
            ValueError: файл не является корректной JSON Schema
        """
        if schema_name in self._schemas:
            return self._schemas[schema_name]

        schema_path = self._schema_dir / f"{schema_name}.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")

        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)

        try:
            Draft202012Validator.check_schema(schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Invalid JSON Schema in {schema_name}.json: {e}") from e

        self._schemas[schema_name] = schema
        return schema


_SCHEMA_LOADER = SchemaLoader()


# =============================================================================
# POOL STATE
# =============================================================================


class PoolStateValidator:
    """Draft 2020-12 валидатор документа pool_state."""

    SCHEMA_NAME = "pool_state"

    def __init__(self, loader: SchemaLoader = _SCHEMA_LOADER):
        self.validator = Draft202012Validator(loader.load_schema(self.SCHEMA_NAME))

    def validate(self, data: Dict[str, Any]) -> None:
        """
        Raises:
            jsonschema.ValidationError: первая найденная ошибка формы
        """
        self.validator.validate(data)


_POOL_STATE_VALIDATOR = PoolStateValidator()


def validate_pool_state(data: Dict[str, Any]) -> None:
    """
    Валидация pool_state данных.

    Инвариант sum(share_balances) == total_shares здесь не проверяется:
    это делает модель PoolState.

    Raises:
        jsonschema.ValidationError: данные не соответствуют схеме
    """
    _POOL_STATE_VALIDATOR.validate(data)
