from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class CommandEnvelope:
    """One authenticated command.

    `signer` is the AccountId produced by the host's authentication step; the
    core trusts it as-is and never inspects signatures.
    """

    command: str
    signer: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_json(j: Any) -> "CommandEnvelope":
        if isinstance(j, CommandEnvelope):
            return j
        if not isinstance(j, dict):
            j = dict(j)  # type: ignore[arg-type]
        return CommandEnvelope(
            command=str(j.get("command", "") or "").strip().upper(),
            signer=str(j.get("signer", "") or ""),
            payload=dict(j.get("payload", {}) or {}),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "signer": self.signer,
            "payload": self.payload,
        }
