from __future__ import annotations

import os
import re
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from launchtidy.contract_store import shipped_contracts
from launchtidy.core.errors import ValidationError

CONFIG_SCHEMA = "config.schema.json"
CONFIG_VERSION = "0.1"
DISABLE_DOTENV_ENV = "LAUNCHTIDY_DISABLE_DOTENV"

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class LaunchTidyConfig:
    version: str = CONFIG_VERSION
    db_path: Optional[str] = None
    system_boundary: Optional[int] = None
    provider: str = "openai.chat"
    # None: the chosen provider supplies its own model, endpoint and key variable
    model: Optional[str] = None
    api_base: Optional[str] = None
    api_key_env: Optional[str] = None
    temperature: float = 0.4
    max_attempts: int = 3
    trace_path: str = "trace.jsonl"
    restart_dock: bool = True

    def with_overrides(self, **overrides: Any) -> "LaunchTidyConfig":
        """
        Apply CLI overrides; `None` means "not given" and keeps the configured value.
        """
        given = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **given) if given else self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_config_path() -> Path:
    """
    Default per-user config location.

    - If XDG_CONFIG_HOME is set, use it.
    - Else use ~/.config
    """
    base = os.environ.get("XDG_CONFIG_HOME")
    if isinstance(base, str) and base.strip():
        return Path(base).expanduser() / "launchtidy" / "config.yml"
    return Path("~/.config").expanduser() / "launchtidy" / "config.yml"


def parse_config(raw: Any) -> LaunchTidyConfig:
    if not isinstance(raw, dict):
        raise ValidationError(code="config.invalid", message="Config must be a YAML mapping")
    errs = shipped_contracts().validate(CONFIG_SCHEMA, raw)
    if errs:
        raise ValidationError(code="config.schema_invalid", message="Config does not match schema", data={"errors": errs})
    return LaunchTidyConfig(**raw)


def load_config(path: Optional[Path] = None) -> LaunchTidyConfig:
    """
    Load the YAML config.

    With no explicit path, a missing default file yields the built-in defaults;
    an explicit path must exist.
    """
    explicit = path is not None
    p = (path or default_config_path()).expanduser()
    if not p.exists():
        if explicit:
            raise ValidationError(code="config.not_found", message=f"Config file not found: {p}", data={"path": str(p)})
        return LaunchTidyConfig()
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValidationError(code="config.invalid_yaml", message="Config is not valid YAML", data={"path": str(p), "error": str(e)}) from e
    return parse_config(raw)


def render_config_yaml(cfg: Optional[LaunchTidyConfig] = None) -> str:
    cfg = cfg or LaunchTidyConfig()
    body = yaml.safe_dump(cfg.to_dict(), sort_keys=False, allow_unicode=True)
    return "# launchtidy config (see `ltidy configure --help`)\n" + body


def load_dotenv_from_file(path: Path) -> None:
    """
    Minimal dotenv loader (no dependencies).

    - Supports lines like KEY=VALUE (optionally prefixed with 'export ')
    - Ignores empty lines and comments (# ...)
    - Strips single/double quotes around values
    - Does not override already-present environment variables
    """
    p = path
    if not p.exists() or not p.is_file():
        return
    try:
        txt = p.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return
    for raw_line in txt.splitlines():
        s = raw_line.strip()
        if not s or s.startswith("#"):
            continue
        if s.startswith("export "):
            s = s[len("export ") :].lstrip()
        if "=" not in s:
            continue
        k, v = s.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k or not _ENV_KEY_RE.match(k):
            continue
        if k in os.environ:
            continue
        if len(v) >= 2 and ((v[0] == v[-1] == '"') or (v[0] == v[-1] == "'")):
            v = v[1:-1]
        os.environ[k] = v


def maybe_load_dotenv(cwd: Optional[Path] = None) -> None:
    if str(os.environ.get(DISABLE_DOTENV_ENV, "")).strip().lower() in ("1", "true", "yes"):
        return
    base = cwd or Path.cwd()
    # `.env` (most tools) or `env` (a repo-safe sample copied into place)
    for name in (".env", "env"):
        load_dotenv_from_file(base / name)
