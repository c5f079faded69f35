import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import yaml

from launchtidy.config import (
    DISABLE_DOTENV_ENV,
    LaunchTidyConfig,
    default_config_path,
    load_config,
    load_dotenv_from_file,
    maybe_load_dotenv,
    render_config_yaml,
)
from launchtidy.core.errors import ValidationError


class TestConfig(unittest.TestCase):
    def test_missing_default_file_gives_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with patch.dict(os.environ, {"XDG_CONFIG_HOME": td}):
                self.assertEqual(default_config_path(), Path(td) / "launchtidy" / "config.yml")
                self.assertEqual(load_config(), LaunchTidyConfig())

    def test_explicit_missing_file_is_an_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ValidationError) as ctx:
                load_config(Path(td) / "missing.yml")
        self.assertEqual(ctx.exception.code, "config.not_found")

    def test_load_and_override(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "c.yml"
            p.write_text('version: "0.1"\nmodel: "deepseek-v3"\nmax_attempts: 5\nrestart_dock: false\n', encoding="utf-8")
            cfg = load_config(p)
        self.assertEqual(cfg.model, "deepseek-v3")
        self.assertEqual(cfg.max_attempts, 5)
        self.assertFalse(cfg.restart_dock)
        self.assertEqual(cfg.provider, "openai.chat")
        self.assertEqual(cfg.with_overrides(model=None, provider="anthropic.messages").provider, "anthropic.messages")
        self.assertEqual(cfg.with_overrides(model=None).model, "deepseek-v3")

    def test_schema_violations(self) -> None:
        cases = [
            'version: "0.1"\nunknown_key: 1\n',
            'model: "x"\n',
            'version: "0.1"\nmax_attempts: 0\n',
            "- a\n- b\n",
        ]
        with tempfile.TemporaryDirectory() as td:
            for i, text in enumerate(cases):
                p = Path(td) / f"c{i}.yml"
                p.write_text(text, encoding="utf-8")
                with self.assertRaises(ValidationError, msg=text) as ctx:
                    load_config(p)
                self.assertTrue(ctx.exception.code.startswith("config."))

    def test_invalid_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "c.yml"
            p.write_text("version: [unclosed\n", encoding="utf-8")
            with self.assertRaises(ValidationError) as ctx:
                load_config(p)
        self.assertEqual(ctx.exception.code, "config.invalid_yaml")

    def test_rendered_scaffold_round_trips(self) -> None:
        raw = yaml.safe_load(render_config_yaml())
        self.assertEqual(LaunchTidyConfig(**raw), LaunchTidyConfig())


class TestDotenv(unittest.TestCase):
    def test_loads_without_overriding(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / ".env"
            p.write_text(
                "# comment\nexport LTIDY_T_A='one'\nLTIDY_T_B=\"two\"\nLTIDY_T_C=three\nnot a pair\n1BAD=x\n",
                encoding="utf-8",
            )
            with patch.dict(os.environ, {"LTIDY_T_C": "kept"}):
                load_dotenv_from_file(p)
                self.assertEqual(os.environ["LTIDY_T_A"], "one")
                self.assertEqual(os.environ["LTIDY_T_B"], "two")
                self.assertEqual(os.environ["LTIDY_T_C"], "kept")
                self.assertNotIn("1BAD", os.environ)
            self.assertNotIn("LTIDY_T_A", os.environ)

    def test_disable_switch(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            (Path(td) / "env").write_text("LTIDY_T_D=1\n", encoding="utf-8")
            with patch.dict(os.environ, {DISABLE_DOTENV_ENV: "1"}):
                maybe_load_dotenv(Path(td))
                self.assertNotIn("LTIDY_T_D", os.environ)
            with patch.dict(os.environ, {DISABLE_DOTENV_ENV: ""}):
                maybe_load_dotenv(Path(td))
                self.assertEqual(os.environ.get("LTIDY_T_D"), "1")


if __name__ == "__main__":
    unittest.main()
