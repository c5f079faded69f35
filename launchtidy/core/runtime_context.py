from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class RuntimeContext:
    """
    Runtime configuration for one run.

    Hard rules:
    - dry-run by default: the store is only written when `dry_run` is False.
    - the Dock is restarted only after an applied write.
    """

    run_id: str
    db_path: Path
    dry_run: bool = True
    restart_dock: bool = True
    system_boundary: Optional[int] = None
    trace_path: Optional[Path] = None
