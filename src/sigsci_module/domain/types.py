"""Shared type aliases and protocol constants used across the package."""
from __future__ import annotations

from typing import Any, TypeAlias

Header: TypeAlias = tuple[str, str]
HeaderList: TypeAlias = list[Header]
Payload: TypeAlias = dict[str, Any]   # one msgpack map, as sent or received
RequestId: TypeAlias = str

MODULE_VERSION = "sigsci-module-python 1.0.0"

# Agent-side header names carried in the PreRequest reply
TAGS_HEADER = "X-SigSci-Tags"
REDIRECT_HEADER = "X-Sigsci-Redirect"

NO_DECISION = -1        # agent_response_code() before/without a decision
NO_REQUEST_ID = ""

# Response codes in this range mean "block"
BLOCK_MIN = 300
BLOCK_MAX = 599
# Redirect folding only applies at or below this code
REDIRECT_MAX = 399
