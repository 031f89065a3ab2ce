from __future__ import annotations

from dataclasses import dataclass

from .utils import log_ok


class UpgradeError(RuntimeError):
    """Fatal failure of one upgrade stage. Every failure is terminal."""

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage
        self.message = message

    def __str__(self) -> str:
        return f"[{self.stage}] {self.message}"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one pure validation: ok, or not ok with a reason."""

    name: str
    ok: bool
    reason: str = ""

    @classmethod
    def passed(cls, name: str, reason: str = "") -> "CheckResult":
        return cls(name, True, reason)

    @classmethod
    def failed(cls, name: str, reason: str) -> "CheckResult":
        return cls(name, False, reason)

    def raise_for(self, stage: str) -> None:
        """Raise UpgradeError for a failed check; log the reason of a passed one."""
        if not self.ok:
            raise UpgradeError(stage, self.reason)
        log_ok(self.reason)
