from milestonesuite.env_auth import (
    BacklogCredentials,
    EnvAuthConfig,
    EnvironmentAuthManager,
    create_env_auth_manager,
)

_VARS = ("BACKLOG_API_KEY", "BACKLOG_SPACE_URL", "BACKLOG_PROJECT_KEY")


def _clear(monkeypatch):
    # setenv first so values loaded from .env files are undone after the test
    for name in _VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_env_auth_config_defaults():
    """Test EnvAuthConfig with defaults."""
    config = EnvAuthConfig()

    assert config.load_dotenv is True
    assert config.dotenv_path is None
    assert config.api_key_var == "BACKLOG_API_KEY"
    assert config.project_key_var == "BACKLOG_PROJECT_KEY"


def test_manager_without_credentials(monkeypatch):
    _clear(monkeypatch)
    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False))

    creds = manager.get_credentials()
    assert manager.get_api_key() is None
    assert creds.missing() == list(_VARS)


def test_manager_reads_environment(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("BACKLOG_API_KEY", "key-123")
    monkeypatch.setenv("BACKLOG_SPACE_URL", "https://demo.backlog.jp/ ")
    monkeypatch.setenv("BACKLOG_PROJECT_KEY", " PRJ ")

    creds = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False)).get_credentials()

    assert creds == BacklogCredentials("key-123", "https://demo.backlog.jp", "PRJ")
    assert creds.missing() == []


def test_custom_variable_names(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("MY_BACKLOG_KEY", "custom")
    config = EnvAuthConfig(load_dotenv=False, api_key_var="MY_BACKLOG_KEY")

    assert EnvironmentAuthManager(config).get_api_key() == "custom"


def test_dotenv_file_is_loaded_without_overriding(monkeypatch, tmp_path):
    _clear(monkeypatch)
    monkeypatch.setenv("BACKLOG_PROJECT_KEY", "FROM_ENV")
    env_file = tmp_path / "backlog.env"
    env_file.write_text(
        "BACKLOG_API_KEY=dotenv-key\n"
        "BACKLOG_SPACE_URL=https://dotenv.backlog.com\n"
        "BACKLOG_PROJECT_KEY=FROM_FILE\n",
        encoding="utf-8",
    )

    manager = create_env_auth_manager(EnvAuthConfig(dotenv_path=str(env_file)))
    creds = manager.get_credentials()

    assert manager.dotenv_file == env_file
    assert creds.api_key == "dotenv-key"
    assert creds.space_url == "https://dotenv.backlog.com"
    assert creds.project_key == "FROM_ENV"


def test_default_dotenv_locations(monkeypatch, tmp_path):
    _clear(monkeypatch)
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env.local").write_text("BACKLOG_API_KEY=local-key\n", encoding="utf-8")

    manager = create_env_auth_manager()

    assert manager.dotenv_file is not None
    assert manager.dotenv_file.name == ".env.local"
    assert manager.get_api_key() == "local-key"
