import pytest

from scripts.release import database_url_for_release
from scripts.start import gunicorn_argv, resolve_port


def test_resolve_port_defaults_and_validates():
    assert resolve_port(None) == 8080
    assert resolve_port(" 5000 ") == 5000
    with pytest.raises(ValueError):
        resolve_port("0")
    with pytest.raises(ValueError):
        resolve_port("http")


def test_gunicorn_argv_binds_requested_port():
    argv = gunicorn_argv(9000, workers=3)
    assert argv[:2] == ["gunicorn", "app.wsgi:app"]
    assert argv[argv.index("--bind") + 1] == "0.0.0.0:9000"
    assert argv[argv.index("--workers") + 1] == "3"


def test_release_refuses_sqlite_in_production(monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///prod.db")
    with pytest.raises(RuntimeError):
        database_url_for_release()

    monkeypatch.delenv("DATABASE_URL")
    with pytest.raises(RuntimeError):
        database_url_for_release()

    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///dev.db")
    assert database_url_for_release() == "sqlite:///dev.db"
