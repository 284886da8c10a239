# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Error Taxonomy
Every fatal condition aborts the whole run; there is no partial result.
The host layer maps these to its own transport (HTTP status, job failure).
"""

from __future__ import annotations


class InputRecordError(ValueError):
    """Raised when a single upstream classification record is unusable."""


class PairingError(RuntimeError):
    """Base class for fatal pairing-run failures."""


class OracleUnavailableError(PairingError):
    """Raised when the tie-break oracle cannot be reached or times out."""


class OracleResponseError(PairingError):
    """Raised when the oracle reply cannot be parsed into the reply contract."""


class OracleContractError(PairingError):
    """
    Raised when a parsed oracle reply breaks the closed-world contract:
    hallucinated front, back outside the allowed set, back reuse,
    singleton reason mismatch, or a missing decision.
    """

    def __init__(self, message: str, front: str | None = None, back: str | None = None):
        super().__init__(message)
        self.front = front
        self.back = back


class AccountingError(PairingError):
    """Raised when a finished run does not account for every image exactly once."""
