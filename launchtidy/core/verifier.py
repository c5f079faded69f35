from __future__ import annotations

from typing import Iterable, List

from .errors import VerifyError
from .model import App, Container, collect_apps


def _ordered_difference(left: List[str], right: Iterable[str]) -> List[str]:
    exclude = set(right)
    out: List[str] = []
    seen = set()
    for name in left:
        if name in exclude or name in seen:
            continue
        seen.add(name)
        out.append(name)
    return out


def verify(reference_apps: Iterable[App], candidate: Container) -> None:
    """
    Check that `candidate` holds exactly the reference app set, by display name.

    Raises VerifyError (duplicate first, then set mismatch). Returns None when the check passes.
    """
    reference = [a.name for a in reference_apps]
    names = [a.name for a in collect_apps(candidate)]

    seen = set()
    extra: List[str] = []
    for name in names:
        if name in seen:
            extra.append(name)
        seen.add(name)
    if extra:
        raise VerifyError.duplicate(extra)

    missing = _ordered_difference(reference, names)
    unexpected = _ordered_difference(names, reference)
    if missing or unexpected or len(names) != len(reference):
        raise VerifyError.set_mismatch(missing=missing, unexpected=unexpected)
