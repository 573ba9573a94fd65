import json
import os
import shutil
import tempfile
import unittest
import zipfile
from pathlib import Path
from unittest import mock

from wextpack.cli import _normalize_legacy_args, build_parser, main
from wextpack.config import load_config
from wextpack.errors import UsageError


class TestParser(unittest.TestCase):
    def test_build_command(self):
        parser, _ = build_parser()
        args = parser.parse_args(["build", "src", "-a", "out", "--as-needed", "-i", "*.md"])
        self.assertEqual(args.command, "build")
        self.assertEqual(args.source_dir, "src")
        self.assertEqual(args.artifacts_dir, "out")
        self.assertTrue(args.as_needed)
        self.assertEqual(args.ignore_files, ["*.md"])

    def test_unset_flags_are_none(self):
        parser, _ = build_parser()
        args = parser.parse_args(["build"])
        self.assertEqual(args.source_dir, ".")
        self.assertIsNone(args.as_needed)
        self.assertIsNone(args.show_ready_message)
        self.assertIsNone(args.ignore_files)

    def test_bare_path_means_build(self):
        self.assertEqual(_normalize_legacy_args([]), ["build"])
        self.assertEqual(_normalize_legacy_args(["./src"]), ["build", "./src"])
        self.assertEqual(_normalize_legacy_args(["--as-needed"]), ["build", "--as-needed"])
        self.assertEqual(_normalize_legacy_args(["-V"]), ["-V"])


class TestConfig(unittest.TestCase):
    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp(prefix="wextpack_cfg_"))

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_missing_config_is_empty(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(load_config(source_dir=self.tmpdir), {})

    def test_reads_yaml_from_source_dir(self):
        (self.tmpdir / "wextpack.yml").write_text(
            "artifacts_dir: dist\nignore_files:\n  - '*.md'\n", encoding="utf-8"
        )
        with mock.patch.dict(os.environ, {}, clear=True):
            config = load_config(source_dir=self.tmpdir)
        self.assertEqual(config.artifacts_dir, "dist")
        self.assertEqual(config.ignore_files, ["*.md"])
        self.assertIsNone(config.as_needed)

    def test_env_overrides_file(self):
        (self.tmpdir / "wextpack.yml").write_text("artifacts_dir: dist\n", encoding="utf-8")
        env = {
            "WEXTPACK_ARTIFACTS_DIR": "/tmp/elsewhere",
            "WEXTPACK_AS_NEEDED": "yes",
            "WEXTPACK_POLL_INTERVAL": "not-a-number",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            config = load_config(source_dir=self.tmpdir)
        self.assertEqual(config.artifacts_dir, "/tmp/elsewhere")
        self.assertTrue(config.as_needed)
        self.assertNotIn("poll_interval", config)

    def test_invalid_yaml(self):
        cfg = self.tmpdir / "bad.yml"
        cfg.write_text("artifacts_dir: [unclosed\n", encoding="utf-8")
        with self.assertRaises(UsageError):
            load_config(cfg)

    def test_unknown_key(self):
        cfg = self.tmpdir / "odd.yml"
        cfg.write_text("sourceDir: x\n", encoding="utf-8")
        with self.assertRaises(UsageError) as cm:
            load_config(cfg)
        self.assertIn("sourceDir", str(cm.exception))

    def test_option_types_are_checked(self):
        cases = [
            "poll_interval: fast\n",
            "poll_interval: -1\n",
            "poll_interval: true\n",
            "as_needed: \"no\"\n",
            "show_ready_message: 0\n",
            "artifacts_dir: [a, b]\n",
        ]
        cfg = self.tmpdir / "typed.yml"
        for text in cases:
            with self.subTest(text=text):
                cfg.write_text(text, encoding="utf-8")
                with self.assertRaises(UsageError):
                    load_config(cfg)

    def test_valid_option_types(self):
        cfg = self.tmpdir / "typed.yml"
        cfg.write_text("poll_interval: 2\nas_needed: false\nshow_ready_message: no\n", encoding="utf-8")
        with mock.patch.dict(os.environ, {}, clear=True):
            config = load_config(cfg)
        self.assertEqual(config.poll_interval, 2)
        self.assertIs(config.as_needed, False)
        self.assertIs(config.show_ready_message, False)

    def test_non_positive_env_poll_interval_is_ignored(self):
        with mock.patch.dict(os.environ, {"WEXTPACK_POLL_INTERVAL": "-0.5"}, clear=True):
            config = load_config(source_dir=self.tmpdir)
        self.assertNotIn("poll_interval", config)


class TestMain(unittest.TestCase):
    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp(prefix="wextpack_cli_"))
        self.source = self.tmpdir / "src"
        self.source.mkdir()
        (self.source / "manifest.json").write_text(
            json.dumps({"name": "CLI Ext", "version": "0.3"}), encoding="utf-8"
        )
        (self.source / "a.js").write_text("1", encoding="utf-8")
        (self.source / "README.md").write_text("docs", encoding="utf-8")
        self.env = mock.patch.dict(os.environ, {}, clear=True)
        self.env.start()

    def tearDown(self):
        self.env.stop()
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_build_writes_package(self):
        out = self.tmpdir / "out"
        code = main(["build", str(self.source), "-a", str(out), "-i", "*.md"])
        self.assertEqual(code, 0)
        package = out / "cli_ext-0.3.zip"
        self.assertTrue(package.is_file())
        with zipfile.ZipFile(package) as zf:
            self.assertEqual(sorted(zf.namelist()), ["a.js", "manifest.json"])

    def test_artifacts_dir_inside_source(self):
        code = main([str(self.source), "-a", str(self.source / "web-ext-artifacts")])
        self.assertEqual(code, 0)
        code = main([str(self.source), "-a", str(self.source / "web-ext-artifacts")])
        self.assertEqual(code, 0)
        package = self.source / "web-ext-artifacts" / "cli_ext-0.3.zip"
        with zipfile.ZipFile(package) as zf:
            names = zf.namelist()
        self.assertFalse(any(name.startswith("web-ext-artifacts") for name in names))

    def test_config_file_supplies_options(self):
        (self.source / "wextpack.yml").write_text(
            f"artifacts_dir: {json.dumps(str(self.tmpdir / 'from-config'))}\n"
            "ignore_files: ['*.md', '*.yml']\n",
            encoding="utf-8",
        )
        self.assertEqual(main(["build", str(self.source)]), 0)
        package = self.tmpdir / "from-config" / "cli_ext-0.3.zip"
        with zipfile.ZipFile(package) as zf:
            self.assertEqual(sorted(zf.namelist()), ["a.js", "manifest.json"])

    def test_invalid_manifest_exits_nonzero(self):
        (self.source / "manifest.json").write_text("{}", encoding="utf-8")
        code = main(["build", str(self.source), "-a", str(self.tmpdir / "out")])
        self.assertEqual(code, 1)

    def test_missing_source_dir(self):
        self.assertEqual(main(["build", str(self.tmpdir / "nope")]), 1)

    def test_bad_config_value_exits_nonzero(self):
        (self.source / "wextpack.yml").write_text("poll_interval: fast\n", encoding="utf-8")
        self.assertEqual(main(["build", str(self.source), "-a", str(self.tmpdir / "out")]), 1)

    def test_old_timestamps_are_packed(self):
        os.utime(self.source / "a.js", (0, 0))
        out = self.tmpdir / "out"
        self.assertEqual(main(["build", str(self.source), "-a", str(out)]), 0)
        with zipfile.ZipFile(out / "cli_ext-0.3.zip") as zf:
            self.assertIn("a.js", zf.namelist())

    def test_unreadable_source_file_exits_nonzero(self):
        with mock.patch("wextpack.zip_dir.zipfile.ZipFile.write", side_effect=PermissionError("denied")):
            code = main(["build", str(self.source), "-a", str(self.tmpdir / "out")])
        self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()
