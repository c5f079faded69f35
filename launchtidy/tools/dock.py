from __future__ import annotations

import subprocess
from typing import Any, Callable, Optional

DEFAULT_PROCESS = "Dock"


def restart(args: dict[str, Any], dry_run: bool, *, runner: Optional[Callable[..., Any]] = None) -> dict[str, Any]:
    """
    Restart the launch surface so it re-reads the store.

    args:
      - process: string (default "Dock")
    """
    process = args.get("process", DEFAULT_PROCESS)
    if not isinstance(process, str) or not process:
        raise ValueError("dock.restart: 'process' must be a non-empty string")

    effects = [{"kind": "process", "summary": f"Restart: {process}", "resources": [process]}]
    if dry_run:
        return {"dry_run": True, "expected_effects": effects}

    run = runner or subprocess.run
    proc = run(["killall", process], capture_output=True, text=True, check=False)
    return {
        "dry_run": False,
        "returncode": int(proc.returncode),
        "stderr": (proc.stderr or "").strip(),
        "effects": effects,
    }
