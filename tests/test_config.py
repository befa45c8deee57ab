from reqlog.config import Settings, get_settings


def test_development_mode_uses_small_batches_and_server_json() -> None:
    settings = get_settings()
    assert settings.is_development is True
    assert settings.kv_batch_size == 3
    assert settings.log_file_name == "server.json"


def test_other_modes_use_log_batch_key(monkeypatch) -> None:
    monkeypatch.setenv("LOG_ENV", "staging")
    get_settings.cache_clear()
    settings = get_settings()
    assert settings.is_development is False
    assert settings.kv_batch_size == 5
    assert settings.log_file_name == "log-batch"


def test_defaults(monkeypatch) -> None:
    for name in ("LOG_ENV", "LOG_STORAGE_DRIVER", "LOG_STORAGE_DIR", "LOG_DB_SINK"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(_env_file=None)
    assert settings.log_env == "production"
    assert settings.log_db_batch_size == 30
    assert settings.log_db_sink == "log"
    assert settings.log_storage_driver == "fs"
    assert settings.enable_metrics_endpoint is True
