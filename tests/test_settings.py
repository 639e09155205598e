import pytest

from src.common import settings as settings_module
from src.common.settings import DEFAULT_PORT, Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "LOG_LEVEL",
        "LOG_INCLUDE_LOCATION",
        "NODE_ENV",
        "OTEL_SERVICE_NAME",
        "OTEL_SERVICE_VERSION",
        "OTEL_TRACING_ENABLED",
        "OTEL_CONSOLE_EXPORTER",
        "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT",
        "PORT",
        "HOST",
    ):
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    s = Settings()

    assert s.log_level == "info"
    assert s.log_include_location is True
    assert s.environment == "development"
    assert s.is_production is False
    assert s.otel_tracing_enabled is True
    assert s.otel_exporter_otlp_traces_endpoint is None
    assert s.port == DEFAULT_PORT


def test_values_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LOG_INCLUDE_LOCATION", "false")
    monkeypatch.setenv("NODE_ENV", "production")
    monkeypatch.setenv("OTEL_TRACING_ENABLED", "false")
    monkeypatch.setenv("PORT", "8080")

    s = Settings()

    assert s.log_level == "debug"
    assert s.log_include_location is False
    assert s.is_production is True
    assert s.otel_tracing_enabled is False
    assert s.port == 8080


@pytest.mark.parametrize("raw", ["true", "yes", "0", "False ", "anything"])
def test_location_only_disabled_by_literal_false(monkeypatch, raw: str) -> None:
    monkeypatch.setenv("LOG_INCLUDE_LOCATION", raw)

    assert Settings().log_include_location is (raw.strip().lower() != "false")


def test_malformed_values_fall_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "not-a-port")
    monkeypatch.setenv("LOG_LEVEL", "")
    monkeypatch.setenv("OTEL_CONSOLE_EXPORTER", "maybe")

    s = Settings()

    assert s.port == DEFAULT_PORT
    assert s.log_level == "info"
    assert s.otel_console_exporter is False


def test_console_exporter_follows_development_mode(monkeypatch) -> None:
    assert Settings().console_exporter is False

    monkeypatch.setenv("NODE_ENV", "development")
    assert Settings().console_exporter is True

    monkeypatch.setenv("NODE_ENV", "production")
    monkeypatch.setenv("OTEL_CONSOLE_EXPORTER", "true")
    assert Settings().console_exporter is True


def test_service_identity_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        settings_module,
        "_distribution_field",
        lambda key: {"Name": "pkg-name", "Version": "3.1.0"}[key],
    )
    assert Settings().service_name == "pkg-name"
    assert Settings().service_version == "3.1.0"

    monkeypatch.setenv("OTEL_SERVICE_NAME", "from-env")
    monkeypatch.setenv("OTEL_SERVICE_VERSION", "9.9.9")
    assert Settings().service_name == "from-env"
    assert Settings().service_version == "9.9.9"

    monkeypatch.setenv("OTEL_SERVICE_NAME", "")
    assert Settings().service_name == "pkg-name"


def test_service_identity_defaults_without_distribution(monkeypatch) -> None:
    monkeypatch.setattr(settings_module, "_distribution_field", lambda key: None)

    s = Settings()

    assert s.service_name == "ts-backend-template"
    assert s.service_version == "1.0.0"


def test_blank_service_name_falls_back_to_default(monkeypatch) -> None:
    monkeypatch.setattr(settings_module, "_distribution_field", lambda key: None)
    monkeypatch.setenv("OTEL_SERVICE_NAME", "")

    assert Settings().service_name == "ts-backend-template"


def test_subclass_overrides_without_annotation() -> None:
    class TestSettings(Settings):
        host = "127.0.0.1"

    assert TestSettings().host == "127.0.0.1"
