"""
Test suite for pooled_vault

Contains:
- tests/unit/          : Unit tests for individual modules and vault scenarios
"""
