"""
Core domain models, integer share math, contracts and errors.

This module contains the foundational building blocks that are independent
of external systems (swap venues, token custody, storage).
"""
