"""
pooled_vault — share-accounting engine для multi-token vault.

Depositors вносят любой из принимаемых токенов, vault нормализует взнос
в единый base asset и выпускает shares, пропорциональные доли пула.
Withdrawal сжигает shares и возвращает стоимость в запрошенном токене.
"""

__version__ = "0.1.0"
