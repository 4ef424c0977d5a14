import json
from datetime import datetime, timezone

import pytest
import yaml
from click.testing import CliRunner

import main
from tbmm.models import DebridDownload, DownloadKind
from tbmm.torbox import TorBoxAPIError, TorBoxClient


@pytest.fixture()
def config_file(tmp_path, monkeypatch):
    monkeypatch.setattr(main, "setup_logging", lambda *args, **kwargs: None)
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump({
        "storage": {"dir": str(tmp_path / "state"), "file": "storage.yaml"},
        "logging": {"dir": str(tmp_path / "logs")},
    }), encoding="utf-8")
    return str(path)


@pytest.fixture()
def run(config_file):
    runner = CliRunner()

    def invoke(*args):
        return runner.invoke(main.cli, ["--config", config_file, *args])

    return invoke


def download(download_id, name, minute):
    return DebridDownload(id=download_id, kind=DownloadKind.TORRENT, name=name, size=2 * 1024 ** 3,
                          created_at=datetime(2024, 1, 1, 12, minute, tzinfo=timezone.utc))


def test_parse_text_output(run):
    result = run("parse", "The.Girlfriend.2021.1080p.10bit.DS4K.NF.WEBRip.Hindi-Telugu.DDP5.1.x265.HEVC-Ospreay")
    assert result.exit_code == 0
    assert "title: The Girlfriend" in result.output
    assert "year: 2021" in result.output
    assert "group_key: thegirlfriend-2021" in result.output


def test_parse_json_output(run):
    result = run("parse", "--json", "Show S02E05.mkv")
    data = json.loads(result.output.splitlines()[0])
    assert data["season"] == 2
    assert data["episode"] == 5
    assert data["group_key"] == "show-s2"


def test_login_and_logout(run, tmp_path):
    assert run("login", "key-123").exit_code == 0
    stored = yaml.safe_load((tmp_path / "state" / "storage.yaml").read_text(encoding="utf-8"))
    assert stored["tbmm.apiKey"] == "key-123"

    assert run("logout").exit_code == 0
    stored = yaml.safe_load((tmp_path / "state" / "storage.yaml").read_text(encoding="utf-8"))
    assert "tbmm.apiKey" not in stored


def test_login_rejects_blank_key(run, tmp_path):
    result = run("login", "   ")
    assert result.exit_code == 2
    assert "API key must not be empty" in result.output
    assert not (tmp_path / "state" / "storage.yaml").exists()


def test_library_requires_login(run):
    result = run("library")
    assert result.exit_code == 2
    assert "Not logged in" in result.output


def test_library_grouped_newest_first(run, monkeypatch):
    monkeypatch.setenv("TORBOX_API_KEY", "key-123")
    downloads = [
        download(1, "Dune.2021.1080p.WEB-DL", 1),
        download(2, "Show.S01E01.720p.HDTV", 2),
        download(3, "Dune.2021.2160p.BluRay", 3),
    ]
    monkeypatch.setattr(TorBoxClient, "get_all_downloads", lambda self: downloads)

    result = run("library", "--no-metadata")

    assert result.exit_code == 0, result.output
    assert "Dune (2021) - 2 releases" in result.output
    assert "Show S01 - 1 release" in result.output
    assert result.output.index("Dune (2021)") < result.output.index("Show S01")
    assert "2160P • BluRay" in result.output


def test_library_flat_sorted_by_title(run, monkeypatch):
    monkeypatch.setenv("TORBOX_API_KEY", "key-123")
    downloads = [download(1, "Zodiac.2007.1080p", 1), download(2, "Alien.1979.720p", 2)]
    monkeypatch.setattr(TorBoxClient, "get_all_downloads", lambda self: downloads)

    result = run("library", "--flat", "--sort", "title", "--no-metadata")

    lines = result.output.splitlines()
    assert "Alien.1979.720p" in lines[0]
    assert "Zodiac.2007.1080p" in lines[1]


def test_library_empty(run, monkeypatch):
    monkeypatch.setenv("TORBOX_API_KEY", "key-123")
    monkeypatch.setattr(TorBoxClient, "get_all_downloads", lambda self: [])
    assert "No media found" in run("library").output


def test_api_error_exits_with_status_1(run, monkeypatch):
    monkeypatch.setenv("TORBOX_API_KEY", "key-123")

    def fail(self):
        raise TorBoxAPIError("TorBox API error: Unauthorized", 401)

    monkeypatch.setattr(TorBoxClient, "get_all_downloads", fail)
    result = run("library")
    assert result.exit_code == 1
    assert "Error: TorBox API error: Unauthorized" in result.output


def test_delete_uses_kind_endpoint(run, monkeypatch):
    monkeypatch.setenv("TORBOX_API_KEY", "key-123")
    calls = []

    def fake_request(self, method, endpoint, params=None, data=None, files=None):
        calls.append((method, endpoint, data))
        return {"success": True, "detail": "Usenet download deleted."}

    monkeypatch.setattr(TorBoxClient, "_request", fake_request)
    result = run("delete", "5", "--kind", "usenet")

    assert result.exit_code == 0
    assert calls == [("POST", "/usenet/controlusenetdownload", {"usenet_id": 5, "operation": "Delete"})]
    assert "Usenet download deleted." in result.output


def test_search_needs_tmdb_key(run):
    result = run("search", "Dune")
    assert result.exit_code == 2
    assert "TMDB_API_KEY" in result.output


def test_settings_persist(run):
    result = run("settings", "--no-badges", "--rpdb-key", "t0-secret")
    assert "show_badges: False" in result.output
    assert "rpdb_api_key: t0-s..." in result.output

    result = run("settings")
    assert "show_badges: False" in result.output
    assert "t0-secret" not in result.output
