"""Unit tests for the .env handling in deltacheats/core/config.py"""

import os

from deltacheats.core.config import load_env, read_env_file


class TestReadEnvFile:

    def test_parses_assignments(self, tmp_path):
        path = tmp_path / ".env"
        path.write_text(
            "# studio settings\n"
            "\n"
            "BACKEND_PORT=6060\n"
            "export NDSTOOL_BIN = /opt/bin/ndstool\n"
            "CHEATS_XML_PATH=\"/data/usrcheat.xml\"\n"
            "LOG_LEVEL='debug'\n"
            "not an assignment\n"
            "=orphan\n",
            encoding="utf-8",
        )
        assert read_env_file(path) == {
            "BACKEND_PORT": "6060",
            "NDSTOOL_BIN": "/opt/bin/ndstool",
            "CHEATS_XML_PATH": "/data/usrcheat.xml",
            "LOG_LEVEL": "debug",
        }

    def test_value_may_contain_equals(self, tmp_path):
        path = tmp_path / ".env"
        path.write_text("DATABASE_URL=sqlite:///x.db?mode=rw\n", encoding="utf-8")
        assert read_env_file(path) == {"DATABASE_URL": "sqlite:///x.db?mode=rw"}

    def test_missing_file(self, tmp_path):
        assert read_env_file(tmp_path / "absent.env") == {}


class TestLoadEnv:

    def test_existing_variables_win(self, tmp_path, monkeypatch):
        path = tmp_path / ".env"
        path.write_text("DC_TEST_KEEP=from-file\nDC_TEST_NEW=from-file\n", encoding="utf-8")
        monkeypatch.setenv("DC_TEST_KEEP", "from-env")
        monkeypatch.setenv("DC_TEST_NEW", "unset")
        monkeypatch.delenv("DC_TEST_NEW")

        load_env([path])

        assert os.environ["DC_TEST_KEEP"] == "from-env"
        assert os.environ["DC_TEST_NEW"] == "from-file"

    def test_first_file_wins(self, tmp_path, monkeypatch):
        first = tmp_path / "first.env"
        second = tmp_path / "second.env"
        first.write_text("DC_TEST_ORDER=first\n", encoding="utf-8")
        second.write_text("DC_TEST_ORDER=second\n", encoding="utf-8")
        monkeypatch.setenv("DC_TEST_ORDER", "unset")
        monkeypatch.delenv("DC_TEST_ORDER")

        load_env([first, second])

        assert os.environ["DC_TEST_ORDER"] == "first"
