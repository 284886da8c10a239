# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
LabelPair — Oracle Module
Public API for the tie-break oracle adapter.
"""

from labelpair.modules.oracle.client import OpenAIOracleClient, OracleClient
from labelpair.modules.oracle.contract import (
    OracleDecision,
    parse_reply,
    strip_fences,
    validate_reply,
)
from labelpair.modules.oracle.prompt import SYSTEM_PROMPT, USER_PROMPT, render_user_prompt
from labelpair.modules.oracle.tiebreak import (
    TieBreakOutcome,
    allowed_backs,
    build_oracle_request,
    resolve_ties,
)

__all__ = [
    # Transport
    "OpenAIOracleClient",
    "OracleClient",
    # Contract
    "OracleDecision",
    "parse_reply",
    "strip_fences",
    "validate_reply",
    # Prompt
    "SYSTEM_PROMPT",
    "USER_PROMPT",
    "render_user_prompt",
    # Resolution
    "TieBreakOutcome",
    "allowed_backs",
    "build_oracle_request",
    "resolve_ties",
]
