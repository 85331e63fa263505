"""Asset Registry — какие токены принимает vault и какой из них base asset.

Pure lookup: после конструирования registry не мутируется.
Неизвестный токен трактуется как не принятый (is_accepted -> False);
исключение UnsupportedToken бросает только descriptor().
"""

from typing import Iterable

from pooled_vault.core.domain.tokens import TokenDescriptor
from pooled_vault.core.errors import UnsupportedToken


class AssetRegistry:
    """Registry принимаемых токенов.

    Инварианты конструктора:
    - минимум один дескриптор
    - token_id уникальны
    - ровно один дескриптор с is_base_asset=True
    """

    def __init__(self, descriptors: Iterable[TokenDescriptor]):
        """
        Args:
            descriptors: дескрипторы принимаемых токенов

        Raises:
            ValueError: если нарушен инвариант конструктора
        """
        self._descriptors: dict[str, TokenDescriptor] = {}

        for descriptor in descriptors:
            if descriptor.token_id in self._descriptors:
                raise ValueError(f"Duplicate token_id in registry: {descriptor.token_id!r}")
            self._descriptors[descriptor.token_id] = descriptor

        if not self._descriptors:
            raise ValueError("Registry requires at least one token")

        base_assets = [d for d in self._descriptors.values() if d.is_base_asset]
        if len(base_assets) != 1:
            raise ValueError(
                f"Registry requires exactly one base asset, got {len(base_assets)}"
            )
        self._base_asset = base_assets[0]

    @classmethod
    def with_base(
        cls, base: TokenDescriptor, others: Iterable[TokenDescriptor] = ()
    ) -> "AssetRegistry":
        """Удобный конструктор: base asset + остальные токены."""
        base_descriptor = base if base.is_base_asset else base.model_copy(update={"is_base_asset": True})
        return cls([base_descriptor, *others])

    def is_accepted(self, token: str) -> bool:
        return token in self._descriptors

    def is_base_asset(self, token: str) -> bool:
        return token == self._base_asset.token_id

    @property
    def base_asset(self) -> TokenDescriptor:
        return self._base_asset

    def descriptor(self, token: str) -> TokenDescriptor:
        """
        Raises:
            UnsupportedToken: если токен не зарегистрирован
        """
        try:
            return self._descriptors[token]
        except KeyError:
            raise UnsupportedToken(token) from None

    def tokens(self) -> list[TokenDescriptor]:
        """Все дескрипторы, base asset первым."""
        others = [d for d in self._descriptors.values() if not d.is_base_asset]
        return [self._base_asset, *others]

    def __contains__(self, token: object) -> bool:
        return token in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)
