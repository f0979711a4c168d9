"""Unit tests for Settings loading and derived paths."""

from pathlib import Path

from pydantic import ValidationError
import pytest

from unity_docs_mcp.config import Settings


def test_defaults_from_test_environment(tmp_path):
    settings = Settings()

    assert settings.default_version == "6000.1"
    assert settings.get_supported_versions() == ["6000.0", "6000.1", "6000.2", "6000.3"]
    assert settings.data_dir == tmp_path / "data"
    assert settings.read_page_size == 2000
    assert settings.max_code_examples == 3


def test_database_path_defaults_under_data_dir(tmp_path):
    settings = Settings(data_dir=tmp_path / "corpus")
    assert settings.resolved_database_path() == tmp_path / "corpus" / "unity.db"


def test_explicit_database_path(tmp_path):
    settings = Settings(database_path=str(tmp_path / "elsewhere.db"))
    assert settings.resolved_database_path() == tmp_path / "elsewhere.db"


def test_directory_layout():
    settings = Settings(data_dir=Path("/srv/unity"))

    assert settings.zips_dir == Path("/srv/unity/unity-zips")
    assert settings.packages_dir == Path("/srv/unity/unity-packages")
    assert settings.version_docs_dir() == Path("/srv/unity/extracted/unity-6000.1")
    assert settings.version_docs_dir("6000.0") == Path("/srv/unity/extracted/unity-6000.0")


def test_download_url_substitutes_version():
    settings = Settings()
    assert settings.download_url("6000.2") == (
        "https://cloudmedia-docs.unity3d.com/docscloudstorage/en/6000.2/UnityDocumentation.zip"
    )


def test_default_version_must_be_supported():
    with pytest.raises(ValidationError, match="not listed in SUPPORTED_VERSIONS"):
        Settings(default_version="2022.3")


def test_search_default_limit_cannot_exceed_maximum(monkeypatch):
    monkeypatch.setenv("SEARCH_DEFAULT_LIMIT", "50")
    monkeypatch.setenv("SEARCH_MAX_LIMIT", "20")
    with pytest.raises(ValidationError, match="exceeds SEARCH_MAX_LIMIT"):
        Settings()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SUPPORTED_VERSIONS", " 6000.2 , 6000.3,")
    monkeypatch.setenv("DEFAULT_VERSION", "6000.3")
    monkeypatch.setenv("HTTP_TIMEOUT", "5")

    settings = Settings()

    assert settings.get_supported_versions() == ["6000.2", "6000.3"]
    assert settings.default_version == "6000.3"
    assert settings.http_timeout == 5


def test_invalid_numeric_environment_value(monkeypatch):
    monkeypatch.setenv("READ_PAGE_SIZE", "0")
    with pytest.raises(ValidationError):
        Settings()


@pytest.mark.parametrize(
    ("mode", "level", "expected"),
    [("stdio", "debug", "error"), ("debug", "debug", "debug"), ("debug", "info", "info")],
)
def test_effective_log_level(mode, level, expected):
    assert Settings(mcp_mode=mode, log_level=level).effective_log_level() == expected
