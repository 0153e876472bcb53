from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

Json = Dict[str, Any]

# Canonical error codes surfaced to callers.
UNKNOWN = "unknown"
NO_PERMISSION = "no_permission"
NOT_OWNED = "not_owned"
NO_SUPPLY = "no_supply"
TYPE_OVERFLOW = "type_overflow"
INVALID_PAYLOAD = "invalid_payload"
COMMAND_UNIMPLEMENTED = "command_unimplemented"
INVARIANT_VIOLATION = "invariant_violation"
FORBIDDEN = "forbidden"


@dataclass
class ApplyError(Exception):
    """Canonical error type for command handling and dispatch failures."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


@dataclass
class AssetApplyError(ApplyError):
    """Fungible registry errors (Unknown, NoPermission)."""

    code: str
    reason: str
    details: Optional[Json] = None


@dataclass
class UniqueAssetApplyError(ApplyError):
    """Unique registry errors (Unknown, NotOwned, NoSupply, TypeOverflow)."""

    code: str
    reason: str
    details: Optional[Json] = None
