"""Tests for the command-line interface."""

import argparse
import json

import pytest
import requests

import main
from conftest import AK620, I5, RYZEN, SAMSUNG_M2, SEED_DIR, X370


def cli_parts(*pairs):
    return [f"{category_slug}={slug}" for category_slug, slug in pairs]


@pytest.fixture
def catalog(tmp_path):
    """A seeded catalog file; returns the --db arguments."""
    db_args = ["--db", str(tmp_path / "catalog.db")]
    assert main.main(db_args + ["seed", SEED_DIR]) == main.EXIT_COMPATIBLE
    return db_args


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class TestParsePart:
    """Tests for parse_part."""

    def test_valid(self):
        assert main.parse_part("processory=ryzen-5-2600") == ("processory", "ryzen-5-2600")

    @pytest.mark.parametrize("argument", ["processory", "=ryzen", "processory="])
    def test_invalid(self, argument):
        with pytest.raises(argparse.ArgumentTypeError):
            main.parse_part(argument)


class TestLocalCommands:
    """Commands run against a local catalog file."""

    def test_seed_output(self, tmp_path, capsys):
        assert main.main(["--db", str(tmp_path / "c.db"), "seed", SEED_DIR]) == 0
        assert "products: 13" in capsys.readouterr().out

    def test_check_compatible(self, catalog, capsys):
        status = main.main(catalog + ["check"] + cli_parts(X370, RYZEN, SAMSUNG_M2, AK620))
        assert status == main.EXIT_COMPATIBLE
        assert "All compatible." in capsys.readouterr().out

    def test_check_incompatible(self, catalog, capsys):
        status = main.main(catalog + ["check"] + cli_parts(X370, I5, SAMSUNG_M2, AK620))
        assert status == main.EXIT_INCOMPATIBLE
        assert "Сокет (AM4) не совпадает с Сокет (LGA1700)" in capsys.readouterr().out

    def test_check_unknown_part(self, catalog, capsys):
        status = main.main(catalog + ["check"] + cli_parts(X370, ("processory", "pentium-4")))
        assert status == main.EXIT_ERROR
        assert "pentium-4" in capsys.readouterr().out

    def test_saved_build(self, catalog):
        assert main.main(catalog + ["build", "1"]) == main.EXIT_COMPATIBLE
        assert main.main(catalog + ["build", "7"]) == main.EXIT_ERROR

    def test_export_then_import(self, catalog, tmp_path, capsys):
        path = str(tmp_path / "rules.json")
        assert main.main(catalog + ["export-rules", path]) == 0
        with open(path, encoding="utf-8") as f:
            assert len(json.load(f)["rules"]) == 6
        assert main.main(catalog + ["import-rules", path]) == 0
        assert "Imported 0 rules, skipped 6" in capsys.readouterr().out


class TestRemoteMode:
    """--server sends the build to the HTTP API."""

    def test_posts_record_form(self, monkeypatch, capsys):
        calls = []

        def fake_post(url, json=None, timeout=None):
            calls.append((url, json))
            return FakeResponse(200, {"compatible": True, "issues": [], "componentPairs": []})

        monkeypatch.setattr(main.requests, "post", fake_post)
        status = main.main(["--server", "http://rig.test/", "check"] + cli_parts(X370, RYZEN))

        assert status == main.EXIT_COMPATIBLE
        assert calls == [("http://rig.test/api/compatibility/build",
                          {"components": dict([X370, RYZEN])})]

    def test_server_404_is_a_resolution_error(self, monkeypatch):
        monkeypatch.setattr(main.requests, "post",
                            lambda url, json=None, timeout=None: FakeResponse(404, {"error": "Продукт x не найден"}))
        assert main.main(["--server", "http://rig.test", "check"] + cli_parts(X370, RYZEN)) == main.EXIT_ERROR

    def test_connection_failure(self, monkeypatch):
        def refuse(url, json=None, timeout=None):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(main.requests, "post", refuse)
        assert main.main(["--server", "http://rig.test", "check"] + cli_parts(X370, RYZEN)) == main.EXIT_ERROR
