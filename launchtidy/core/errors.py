from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, List


@dataclass(frozen=True)
class LaunchTidyError(Exception):
    code: str
    message: str
    data: dict[str, Any] | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(LaunchTidyError):
    pass


class ProviderError(LaunchTidyError):
    pass


class StoreInconsistency(LaunchTidyError):
    """
    The Launchpad store references rows that do not exist (corrupted store).
    """


class EncodeAssumptionViolation(LaunchTidyError):
    """
    A tree breaks the nesting/identity rules of the layout model (a defect, not a runtime condition).
    """


class ParseFailure(LaunchTidyError):
    pass


class NameNotFoundError(LaunchTidyError):
    @classmethod
    def for_name(cls, name: str) -> "NameNotFoundError":
        return cls(code="compact.name_not_found", message=f"App not found: {name}", data={"name": name})

    @property
    def name(self) -> str:
        return str((self.data or {}).get("name", ""))


class VerifyKind:
    DUPLICATE = "duplicate"
    SET_MISMATCH = "set_mismatch"


class VerifyError(LaunchTidyError):
    """
    Candidate layout does not contain exactly the reference app set.

    data:
      - kind: VerifyKind.DUPLICATE | VerifyKind.SET_MISMATCH
      - names: extra occurrences (duplicate kind)
      - missing / unexpected: set differences (set_mismatch kind)
    """

    @classmethod
    def duplicate(cls, names: List[str]) -> "VerifyError":
        return cls(
            code="verify.duplicate_app",
            message="Apps appear more than once: " + ", ".join(names),
            data={"kind": VerifyKind.DUPLICATE, "names": list(names)},
        )

    @classmethod
    def set_mismatch(cls, *, missing: List[str], unexpected: List[str]) -> "VerifyError":
        parts = []
        if missing:
            parts.append("missing: " + ", ".join(missing))
        if unexpected:
            parts.append("unexpected: " + ", ".join(unexpected))
        return cls(
            code="verify.set_mismatch",
            message="App set differs from the current layout (" + "; ".join(parts or ["count differs"]) + ")",
            data={"kind": VerifyKind.SET_MISMATCH, "missing": list(missing), "unexpected": list(unexpected)},
        )

    @property
    def kind(self) -> str:
        return str((self.data or {}).get("kind", ""))

    @property
    def names(self) -> List[str]:
        return list((self.data or {}).get("names", []))

    @property
    def missing(self) -> List[str]:
        return list((self.data or {}).get("missing", []))

    @property
    def unexpected(self) -> List[str]:
        return list((self.data or {}).get("unexpected", []))

    def feedback(self) -> str:
        """
        Corrective text for the text-generation collaborator.
        """
        if self.kind == VerifyKind.DUPLICATE:
            return "These apps appear more than once, each app must appear exactly once: " + json_list(self.names)
        lines = []
        if self.missing:
            lines.append("These apps are missing, every app must appear: " + json_list(self.missing))
        if self.unexpected:
            lines.append("These apps do not exist and must be removed: " + json_list(self.unexpected))
        if not lines:
            lines.append("The number of apps differs from the input; every app must appear exactly once.")
        return "\n".join(lines)


class RetryBudgetExhausted(LaunchTidyError):
    pass


def json_list(names: List[str]) -> str:
    return json.dumps(list(names), ensure_ascii=False)
