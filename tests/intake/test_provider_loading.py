import asyncio
import os
import unittest

from launchtidy.core.errors import ProviderError, ValidationError
from launchtidy.intake.provider_loading import is_network_provider, load_provider


async def _drain(it):
    return [x async for x in it]


class TestProviderLoading(unittest.TestCase):
    def _without_env(self, name: str):
        old = os.environ.get(name)
        os.environ.pop(name, None)

        def restore() -> None:
            if old is None:
                os.environ.pop(name, None)
            else:
                os.environ[name] = old

        self.addCleanup(restore)

    def test_load_openai_provider_and_missing_key_error(self) -> None:
        self._without_env("OPENAI_API_KEY")
        loaded = load_provider(provider="openai.chat", model="gpt-4o-mini")
        self.assertEqual(loaded.provider_id, "openai.chat")
        self.assertEqual(loaded.model, "gpt-4o-mini")
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(_drain(loaded.provider.stream(messages=[{"role": "user", "content": "hi"}])))
        self.assertEqual(ctx.exception.code, "intake.missing_api_key")
        self.assertIn("OPENAI_API_KEY", str(ctx.exception))

    def test_load_anthropic_provider_with_custom_key_env(self) -> None:
        self._without_env("LTIDY_TEST_ANTHROPIC")
        loaded = load_provider(provider="anthropic.messages", model="claude-sonnet", api_key_env="LTIDY_TEST_ANTHROPIC")
        self.assertEqual(loaded.provider_id, "anthropic.messages")
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(_drain(loaded.provider.stream(messages=[{"role": "user", "content": "hi"}])))
        self.assertIn("LTIDY_TEST_ANTHROPIC", str(ctx.exception))

    def test_builtin_defaults_follow_the_provider(self) -> None:
        anthropic = load_provider(provider="anthropic.messages")
        self.assertEqual(anthropic.model, "claude-3-5-haiku-latest")
        self.assertEqual(anthropic.provider.model, "claude-3-5-haiku-latest")

        openai = load_provider(provider="openai.chat")
        self.assertEqual(openai.model, "gpt-4o-mini")

        self._without_env("ANTHROPIC_API_KEY")
        with self.assertRaises(ProviderError) as ctx:
            asyncio.run(_drain(anthropic.provider.stream(messages=[{"role": "user", "content": "hi"}])))
        self.assertIn("ANTHROPIC_API_KEY", str(ctx.exception))

    def test_dynamic_provider_keeps_its_own_defaults(self) -> None:
        loaded = load_provider(provider="launchtidy.intake.testing:ModelAsResponseProvider")
        self.assertEqual(loaded.model, "[]")
        self.assertTrue(is_network_provider("anthropic"))

    def test_dynamic_provider_import_path(self) -> None:
        loaded = load_provider(provider="launchtidy.intake.testing:ModelAsResponseProvider", model='[["A"]]')
        self.assertEqual(loaded.provider_id, "launchtidy.intake.testing:ModelAsResponseProvider")
        out = asyncio.run(_drain(loaded.provider.stream(messages=[])))
        self.assertEqual("".join(out), '[["A"]]')
        self.assertFalse(is_network_provider(loaded.provider_id))
        self.assertTrue(is_network_provider("openai.chat"))

    def test_invalid_specs(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            load_provider(provider="unknown", model="m")
        self.assertEqual(ctx.exception.code, "intake.provider_invalid")
        with self.assertRaises(ValidationError) as ctx:
            load_provider(provider="launchtidy.no_such_module:X", model="m")
        self.assertEqual(ctx.exception.code, "intake.provider_not_found")
        with self.assertRaises(ValidationError) as ctx:
            load_provider(provider="launchtidy.intake.testing:last_user_message", model="m")
        self.assertEqual(ctx.exception.code, "intake.provider_invalid")


if __name__ == "__main__":
    unittest.main()
