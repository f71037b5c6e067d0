import pytest
import yaml

from periodicos.services.config_manager import ConfigManager, ConfigValidationError

ENV_VARS = ("ZYTE_API_KEY", "QUALIS_DB_PATH", "OPENALEX_MAILTO")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def make_manager(path) -> ConfigManager:
    manager = ConfigManager(config_path=str(path))
    # Keep a developer's .env out of the tests
    manager.env_loaded = True
    return manager


@pytest.fixture
def config_file(tmp_path):
    content = {
        "timeout_seconds": 45,
        "max_workers": 8,
        "export_dir": str(tmp_path / "exports"),
        "proxy": {"api_key": "${ZYTE_API_KEY}", "retry": {"max_attempts": 4}},
        "openalex": {"batch_size": 25},
    }
    path = tmp_path / "harvester.yaml"
    with open(path, "w") as f:
        yaml.dump(content, f)
    return path


def test_load_valid_config(config_file, monkeypatch):
    monkeypatch.setenv("ZYTE_API_KEY", "test-api-key-123")

    settings = make_manager(config_file).load_settings()

    assert settings.timeout_seconds == 45
    assert settings.max_workers == 8
    assert settings.proxy.api_key == "test-api-key-123"
    assert settings.proxy.enabled is True
    assert settings.proxy.retry.max_attempts == 4
    assert settings.openalex.batch_size == 25


def test_unset_variable_disables_proxy(config_file):
    settings = make_manager(config_file).load_settings()

    assert settings.proxy.api_key is None
    assert settings.proxy.enabled is False
    # Other values in the section survive
    assert settings.proxy.retry.max_attempts == 4


def test_missing_file_uses_defaults(tmp_path):
    settings = make_manager(tmp_path / "absent.yaml").load_settings()

    assert settings.max_workers == 5
    assert settings.timeout_seconds == 30.0
    assert settings.proxy.enabled is False


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("ZYTE_API_KEY", "env-key-12345678")
    monkeypatch.setenv("QUALIS_DB_PATH", "/data/qualis.db")
    monkeypatch.setenv("OPENALEX_MAILTO", "lab@example.org")

    settings = make_manager(tmp_path / "absent.yaml").load_settings()

    assert settings.proxy.api_key == "env-key-12345678"
    assert settings.qualis_db_path == "/data/qualis.db"
    assert settings.openalex.mailto == "lab@example.org"


def test_env_override_beats_file(tmp_path, monkeypatch):
    path = tmp_path / "harvester.yaml"
    path.write_text("qualis_db_path: file.db\n")
    monkeypatch.setenv("QUALIS_DB_PATH", "env.db")

    settings = make_manager(path).load_settings()

    assert settings.qualis_db_path == "env.db"


def test_invalid_value(tmp_path):
    path = tmp_path / "harvester.yaml"
    path.write_text("max_workers: 0\n")

    with pytest.raises(ConfigValidationError, match="Invalid configuration"):
        make_manager(path).load_settings()


def test_non_mapping_root(tmp_path):
    path = tmp_path / "harvester.yaml"
    path.write_text("- one\n- two\n")

    with pytest.raises(ConfigValidationError, match="mapping"):
        make_manager(path).load_settings()


def test_malformed_yaml(tmp_path):
    path = tmp_path / "harvester.yaml"
    path.write_text("proxy: [unclosed\n")

    with pytest.raises(ConfigValidationError):
        make_manager(path).load_settings()


def test_empty_file(tmp_path):
    path = tmp_path / "harvester.yaml"
    path.write_text("")

    assert make_manager(path).load_settings().max_workers == 5


def test_settings_cached(config_file):
    manager = make_manager(config_file)
    assert manager.load_settings() is manager.load_settings()
