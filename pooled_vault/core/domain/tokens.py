"""
TokenDescriptor — описание принимаемого vault токена

Immutable Pydantic модель. Одна запись на токен в Asset Registry;
ровно один дескриптор в registry имеет is_base_asset=True.
"""

from pydantic import BaseModel, Field, field_validator


class TokenDescriptor(BaseModel):
    """
    Дескриптор принимаемого токена.

    token_id: непрозрачный handle (адрес контракта, тикер и т.п.),
    по нему идут все lookups.
    """

    token_id: str = Field(..., min_length=1, description="Идентификатор токена (адрес/handle)")
    symbol: str = Field(..., min_length=1, description="Тикер токена (например, 'USDT')")
    decimals: int = Field(18, ge=0, le=36, description="Количество десятичных знаков")
    is_base_asset: bool = Field(False, description="True для reference (base) asset пула")

    model_config = {"frozen": True}

    @field_validator("token_id")
    @classmethod
    def validate_token_id(cls, v: str) -> str:
        """Пробелы по краям почти всегда ошибка ввода адреса."""
        if v != v.strip():
            raise ValueError(f"token_id {v!r} has leading or trailing whitespace")
        return v
