from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from launchtidy.codec.compact import encode
from launchtidy.config import LaunchTidyConfig, load_config, maybe_load_dotenv, render_config_yaml
from launchtidy.contract_checks import check_contracts, print_report
from launchtidy.core.errors import LaunchTidyError, ValidationError
from launchtidy.core.kernel import Kernel, Transform
from launchtidy.core.model import find_by_name, to_dict
from launchtidy.core.operations import (
    GROUP_MODES,
    by_bundle_vendor,
    by_color_class,
    by_first_letter,
    flatten,
    group_by,
    sort,
)
from launchtidy.core.runtime_context import RuntimeContext
from launchtidy.icons import color_class_map
from launchtidy.intake.provider_loading import is_network_provider, load_provider
from launchtidy.store.sqlite_store import LaunchpadStore, default_db_path
from launchtidy.store.tree_builder import build_root
from launchtidy.trace.replay import Replay

GROUP_KEYS = ("first-letter", "vendor", "color")


def _format_cli_error(e: Exception) -> str:
    """
    Print-friendly error formatting for CLI commands.
    - Always includes code/message (via __str__) when it's a LaunchTidyError
    - Includes structured `data` payload when present (useful for HTTP errors)
    """
    if isinstance(e, LaunchTidyError) and isinstance(e.data, dict) and e.data:
        data = dict(e.data)
        # Keep error bodies bounded to avoid dumping huge blobs.
        if isinstance(data.get("body"), str) and len(data["body"]) > 2000:
            data["body"] = data["body"][:2000] + "...(truncated)"
        return str(e) + "\n" + json.dumps(data, ensure_ascii=False, indent=2)
    return str(e)


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _load_cfg(args: argparse.Namespace) -> LaunchTidyConfig:
    """
    Config file values with the command-line flags of `args` layered on top.
    """
    cfg_path = Path(args.config).expanduser() if getattr(args, "config", None) else None
    cfg = load_config(cfg_path)
    return cfg.with_overrides(
        db_path=getattr(args, "db", None),
        system_boundary=getattr(args, "system_boundary", None),
        trace_path=getattr(args, "trace", None),
        restart_dock=False if getattr(args, "no_restart", False) else None,
        provider=getattr(args, "provider", None),
        model=getattr(args, "model", None),
        api_base=getattr(args, "api_base", None),
        api_key_env=getattr(args, "api_key_env", None),
        max_attempts=getattr(args, "max_attempts", None),
    )


def _db_path(cfg: LaunchTidyConfig) -> Path:
    if cfg.db_path:
        return Path(cfg.db_path).expanduser()
    return default_db_path()


def _context(args: argparse.Namespace, cfg: LaunchTidyConfig) -> RuntimeContext:
    return RuntimeContext(
        run_id=args.run_id,
        db_path=_db_path(cfg),
        dry_run=not bool(getattr(args, "apply", False)),
        restart_dock=cfg.restart_dock,
        system_boundary=cfg.system_boundary,
        trace_path=Path(cfg.trace_path).expanduser() if cfg.trace_path else None,
    )


def _store(args: argparse.Namespace) -> LaunchpadStore:
    cfg = _load_cfg(args)
    return LaunchpadStore(_db_path(cfg), system_boundary=cfg.system_boundary)


def cmd_show(args: argparse.Namespace) -> int:
    root = build_root(_store(args).read_snapshot())
    _print_json(to_dict(root) if args.full else encode(root))
    return 0


def cmd_find(args: argparse.Namespace) -> int:
    root = build_root(_store(args).read_snapshot())
    found = find_by_name(root, args.kind, args.pattern)
    _print_json([to_dict(item) for item in found])
    return 0


def _run_transform(args: argparse.Namespace, name: str, transform: Transform) -> int:
    cfg = _load_cfg(args)
    kernel = Kernel(_context(args, cfg))
    result = kernel.run_transform(name, transform)
    _print_json(result.to_dict())
    return 0


def cmd_flatten(args: argparse.Namespace) -> int:
    return _run_transform(args, "flatten", lambda root, _snapshot: flatten(root))


def cmd_sort(args: argparse.Namespace) -> int:
    return _run_transform(args, "sort", lambda root, _snapshot: sort(root))


def _group_transform(by: str, mode: str) -> Transform:
    if by == "first-letter":
        return lambda root, _snapshot: group_by(root, by_first_letter, mode)
    if by == "vendor":
        return lambda root, _snapshot: group_by(root, by_bundle_vendor, mode)
    if by == "color":
        return lambda root, snapshot: group_by(root, by_color_class(color_class_map(snapshot)), mode)
    raise ValidationError(code="cli.invalid", message=f"--by must be one of {', '.join(GROUP_KEYS)}", data={"by": by})


def cmd_group(args: argparse.Namespace) -> int:
    return _run_transform(args, f"group:{args.by}:{args.mode}", _group_transform(args.by, args.mode))


def _progress_printer(stream=None) -> Callable[[float], None]:
    out = stream or sys.stderr

    def _report(fraction: float) -> None:
        out.write("\r{}%".format(int(round(fraction * 100))))
        out.flush()

    return _report


def _read_instruction(args: argparse.Namespace) -> str:
    text = args.text
    if text is None:
        # Read from stdin if not provided.
        text = sys.stdin.read()
    return text if isinstance(text, str) else ""


def _api_base(cfg: LaunchTidyConfig) -> Optional[str]:
    if cfg.api_base:
        return cfg.api_base
    # OPENAI_API_BASE only ever redirects the OpenAI-compatible provider.
    if cfg.provider in ("openai.chat", "openai"):
        env_base = os.environ.get("OPENAI_API_BASE")
        if isinstance(env_base, str) and env_base.strip():
            return env_base.strip()
    return None


def cmd_ai(args: argparse.Namespace) -> int:
    """
    Natural-language reorganization through a text-generation provider.
    """
    cfg = _load_cfg(args)

    # Require explicit opt-in for network usage.
    if is_network_provider(cfg.provider) and not bool(getattr(args, "allow_network", False)):
        print("intake.network_denied: pass --allow-network to send the layout to {}".format(cfg.provider))
        return 2

    text = _read_instruction(args)
    if not text.strip():
        print("intake.invalid: missing instruction (use --text or pipe stdin)")
        return 2

    loaded = load_provider(
        provider=cfg.provider,
        model=cfg.model,
        api_base=_api_base(cfg),
        api_key_env=cfg.api_key_env,
        temperature=cfg.temperature,
    )
    kernel = Kernel(_context(args, cfg))
    on_progress = None if args.quiet else _progress_printer()
    try:
        result = asyncio.run(
            kernel.run_ai(text, provider=loaded.provider, max_attempts=cfg.max_attempts, on_progress=on_progress)
        )
    finally:
        if on_progress is not None:
            sys.stderr.write("\n")
    out: Dict[str, Any] = result.to_dict()
    out["provider"] = {"id": loaded.provider_id, "model": loaded.model}
    _print_json(out)
    return 0


def cmd_configure(args: argparse.Namespace) -> int:
    out = render_config_yaml()
    if args.output:
        p = Path(args.output).expanduser()
        if p.exists() and not args.force:
            print("config.exists: {} already exists (pass --force to overwrite)".format(p))
            return 2
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(out, encoding="utf-8")
        print(str(p))
    else:
        print(out, end="")
    return 0


def cmd_show_trace(args: argparse.Namespace) -> int:
    events = Replay(Path(args.trace)).select(event_type=args.event_type, run_id=args.run_id, tail=args.tail)
    for e in events:
        if args.pretty:
            print(json.dumps(e, ensure_ascii=False, indent=2))
        else:
            print(json.dumps(e, ensure_ascii=False))
    return 0


def cmd_check_contracts(_args: argparse.Namespace) -> int:
    return print_report(check_contracts())


def _add_store_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--db", help="Launchpad database path (default: config db_path, else getconf DARWIN_USER_DIR)")
    p.add_argument("--config", help="Config YAML path (default: $XDG_CONFIG_HOME/launchtidy/config.yml)")
    p.add_argument("--system-boundary", type=int, help="Override the detected system boundary (highest reserved rowid)")


def _add_run_args(p: argparse.ArgumentParser) -> None:
    _add_store_args(p)
    p.add_argument("--trace", help="Trace output path (jsonl; default: config trace_path)")
    p.add_argument("--run-id", default="run_cli", help="Run ID for trace correlation")
    p.add_argument("--apply", action="store_true", help="Write the new layout to the database (default: dry-run)")
    p.add_argument("--no-restart", action="store_true", help="Do not restart the Dock after an applied write")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ltidy", description="Launchpad layout tidy (dry-run unless --apply)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_show = sub.add_parser("show", help="Print the current layout (compact JSON)")
    _add_store_args(p_show)
    p_show.add_argument("--full", action="store_true", help="Print the full tree with identities")
    p_show.set_defaults(func=cmd_show)

    p_find = sub.add_parser("find", help="Find apps or folders whose name matches a regex")
    _add_store_args(p_find)
    p_find.add_argument("--kind", choices=["app", "folder"], default="app", help="What to search (default: app)")
    p_find.add_argument("pattern", help="Regular expression (Python re.search)")
    p_find.set_defaults(func=cmd_find)

    p_flatten = sub.add_parser("flatten", help="Put every app on a single page")
    _add_run_args(p_flatten)
    p_flatten.set_defaults(func=cmd_flatten)

    p_sort = sub.add_parser("sort", help="Sort every page and folder by name (pinyin-aware)")
    _add_run_args(p_sort)
    p_sort.set_defaults(func=cmd_sort)

    p_group = sub.add_parser("group", help="Group apps into folders or pages by a key")
    _add_run_args(p_group)
    p_group.add_argument("--by", choices=list(GROUP_KEYS), default="first-letter", help="Group key (default: first-letter)")
    p_group.add_argument("--mode", choices=list(GROUP_MODES), default="folder", help="folder|page (default: folder)")
    p_group.set_defaults(func=cmd_group)

    p_ai = sub.add_parser("ai", help="Reorganize from a natural-language instruction")
    _add_run_args(p_ai)
    p_ai.add_argument("--text", help="Instruction text. If omitted, read from stdin.")
    p_ai.add_argument("--provider", help="Provider ID (openai.chat, anthropic.messages) or 'module:object' spec")
    p_ai.add_argument("--model", help="Model name (provider-specific)")
    p_ai.add_argument("--api-base", help="Provider API base URL")
    p_ai.add_argument("--api-key-env", help="API key env var name")
    p_ai.add_argument("--max-attempts", type=int, help="Attempts before giving up (default: config, 3)")
    p_ai.add_argument("--allow-network", action="store_true", help="Enable the network call to a built-in provider")
    p_ai.add_argument("--quiet", action="store_true", help="Do not print progress to stderr")
    p_ai.set_defaults(func=cmd_ai)

    p_conf = sub.add_parser("configure", help="Print or write a scaffold config")
    p_conf.add_argument("--output", help="Write to this path instead of stdout")
    p_conf.add_argument("--force", action="store_true", help="Overwrite an existing file")
    p_conf.set_defaults(func=cmd_configure)

    p_show_trace = sub.add_parser("show-trace", help="Show trace events from a JSONL file")
    p_show_trace.add_argument("--trace", required=True, help="Trace path (jsonl)")
    p_show_trace.add_argument("--event-type", help="Filter by event_type")
    p_show_trace.add_argument("--run-id", help="Filter by run_id")
    p_show_trace.add_argument("--tail", type=int, help="Show only last N events")
    p_show_trace.add_argument("--pretty", action="store_true", help="Pretty-print each event as JSON")
    p_show_trace.set_defaults(func=cmd_show_trace)

    p_check = sub.add_parser("check-contracts", help="Validate shipped schemas and examples")
    p_check.set_defaults(func=cmd_check_contracts)
    return parser


def main(argv=None) -> int:
    maybe_load_dotenv()
    parser = build_parser()
    ns = parser.parse_args(argv)
    try:
        return int(ns.func(ns))
    except Exception as e:  # noqa: BLE001
        print(_format_cli_error(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
