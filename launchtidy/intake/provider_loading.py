from __future__ import annotations

import importlib
import inspect
from dataclasses import dataclass
from typing import Any, Dict, Optional

from launchtidy.core.errors import ValidationError

from .providers import TextGenProvider

BUILTIN_PROVIDERS = ("openai.chat", "anthropic.messages")


@dataclass(frozen=True)
class LoadedProvider:
    provider: TextGenProvider
    provider_id: str
    model: str


def _import_object(spec: str) -> Any:
    """
    Import by "module:attr" spec.
    """
    if ":" not in spec:
        raise ValidationError(
            code="intake.provider_invalid",
            message="provider must be one of {} or a 'module:object' spec".format(", ".join(BUILTIN_PROVIDERS)),
            data={"provider": spec},
        )
    mod_name, attr = spec.split(":", 1)
    if not mod_name or not attr:
        raise ValidationError(code="intake.provider_invalid", message="provider spec must be 'module:object'")
    try:
        mod = importlib.import_module(mod_name)
    except ImportError as e:
        raise ValidationError(code="intake.provider_not_found", message="Failed to import provider module", data={"module": mod_name}) from e
    if not hasattr(mod, attr):
        raise ValidationError(code="intake.provider_not_found", message="Provider object not found in module", data={"module": mod_name, "attr": attr})
    return getattr(mod, attr)


def _build_with_compatible_kwargs(obj: Any, kwargs: Dict[str, Any]) -> Any:
    """
    Instantiate a class or call a factory with only accepted kwargs.
    """
    try:
        sig = inspect.signature(obj)
    except (TypeError, ValueError):
        return obj(**kwargs)  # best-effort

    accepted = {}
    for name, p in sig.parameters.items():
        if name == "self":
            continue
        if p.kind in (inspect.Parameter.VAR_KEYWORD,):
            accepted = dict(kwargs)
            break
        if name in kwargs:
            accepted[name] = kwargs[name]
    return obj(**accepted)


def load_provider(
    *,
    provider: str,
    model: Optional[str] = None,
    api_base: Optional[str] = None,
    api_key_env: Optional[str] = None,
    temperature: float = 0.4,
) -> LoadedProvider:
    """
    Thin infra layer:
    - built-in provider IDs ("openai.chat", "anthropic.messages")
    - external providers via "module:Class" or "module:factory"

    `model`, `api_base` and `api_key_env` left as None fall back to the
    provider's own defaults. The returned object must satisfy the
    TextGenProvider protocol (have .stream()).
    """
    if not isinstance(provider, str) or not provider:
        raise ValidationError(code="intake.provider_invalid", message="provider must be a non-empty string")
    if model is not None and (not isinstance(model, str) or not model):
        raise ValidationError(code="intake.invalid", message="model must be a non-empty string")

    if provider in ("openai.chat", "openai"):
        from .openai_chat import OpenAIChatClient, OpenAIChatConfig, OpenAIChatProvider

        cfg = OpenAIChatConfig()
        cfg = OpenAIChatConfig(
            api_base=api_base or cfg.api_base,
            api_key_env=api_key_env or cfg.api_key_env,
            timeout_s=cfg.timeout_s,
        )
        chosen = model or cfg.default_model
        client = OpenAIChatClient(config=cfg)
        return LoadedProvider(
            provider=OpenAIChatProvider(client=client, model=chosen, temperature=temperature),
            provider_id="openai.chat",
            model=chosen,
        )

    if provider in ("anthropic.messages", "anthropic"):
        from .anthropic_messages import AnthropicMessagesClient, AnthropicMessagesConfig, AnthropicMessagesProvider

        cfg2 = AnthropicMessagesConfig()
        cfg2 = AnthropicMessagesConfig(
            api_base=api_base or cfg2.api_base,
            api_key_env=api_key_env or cfg2.api_key_env,
            timeout_s=cfg2.timeout_s,
            anthropic_version=cfg2.anthropic_version,
            max_tokens=cfg2.max_tokens,
        )
        chosen = model or cfg2.default_model
        client2 = AnthropicMessagesClient(config=cfg2)
        return LoadedProvider(
            provider=AnthropicMessagesProvider(client=client2, model=chosen, temperature=temperature),
            provider_id="anthropic.messages",
            model=chosen,
        )

    # Dynamic provider: "module:Class" or "module:factory"; unset values keep the provider's defaults.
    obj = _import_object(provider)
    given = {"model": model, "api_base": api_base, "api_key_env": api_key_env, "temperature": temperature}
    kwargs: Dict[str, Any] = {k: v for k, v in given.items() if v is not None}
    try:
        if callable(obj):
            inst = _build_with_compatible_kwargs(obj, kwargs)
        else:
            inst = obj
    except TypeError as e:
        raise ValidationError(code="intake.provider_invalid", message="Provider could not be constructed with given arguments", data={"provider": provider}) from e

    if not hasattr(inst, "stream") or not callable(getattr(inst, "stream")):
        raise ValidationError(code="intake.provider_invalid", message="Provider must have a callable stream() method", data={"provider": provider})

    return LoadedProvider(provider=inst, provider_id=provider, model=str(getattr(inst, "model", model or "")))


def is_network_provider(provider_id: str) -> bool:
    return provider_id in BUILTIN_PROVIDERS or provider_id in ("openai", "anthropic")
