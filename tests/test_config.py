"""Tests for configuration loading and environment knobs."""

import io
import json

import pydantic
import pytest
import structlog

from clouddb import auth, config, session


@pytest.fixture
def reset_structlog():
    yield
    structlog.reset_defaults()


def test_defaults(monkeypatch):
    monkeypatch.delenv(config.VERBOSE_ENV_VAR, raising=False)
    monkeypatch.delenv(config.SERVICENET_ENV_VAR, raising=False)

    cfg = config.ClientConfig()

    assert cfg.auth_url == auth.AUTH_USA
    assert cfg.retry_auth is True
    assert cfg.verbose is False
    assert cfg.servicenet is False
    assert cfg.uppercase_names is False
    assert cfg.timeout == 30.0


@pytest.mark.parametrize(("value", "expected"), [("1", True), ("yes", True), ("0", False), ("", False)])
def test_verbose_from_environment(monkeypatch, value, expected):
    monkeypatch.setenv(config.VERBOSE_ENV_VAR, value)
    assert config.ClientConfig().verbose is expected


def test_region_is_case_insensitive():
    assert config.ClientConfig(region="DFW").region is session.Region.DFW


def test_invalid_values_rejected():
    with pytest.raises(pydantic.ValidationError):
        config.ClientConfig(region="mars")
    with pytest.raises(pydantic.ValidationError):
        config.ClientConfig(timeout=0)


def test_load_config_from_file(tmp_path):
    path = tmp_path / "clouddb.json"
    path.write_text(
        json.dumps({"username": "u", "api_key": "k", "region": "ord", "auth_url": auth.AUTH_UK}),
    )

    cfg = config.load_config(str(path))

    assert cfg.username == "u"
    assert cfg.region is session.Region.ORD
    assert cfg.auth_url == auth.AUTH_UK


def test_load_config_from_environment_path(tmp_path, monkeypatch):
    path = tmp_path / "clouddb.json"
    path.write_text(json.dumps({"username": "env-user"}))
    monkeypatch.setenv(config.CONFIG_ENV_VAR, str(path))

    assert config.load_config().username == "env-user"


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="not found"):
        config.load_config(str(tmp_path / "missing.json"))


def test_load_config_without_path(monkeypatch):
    monkeypatch.delenv(config.CONFIG_ENV_VAR, raising=False)
    with pytest.raises(FileNotFoundError, match=config.CONFIG_ENV_VAR):
        config.load_config()


@pytest.mark.usefixtures("reset_structlog")
def test_configure_logging_sets_level():
    config.configure_logging("warning")

    wrapper = structlog.get_config()["wrapper_class"]
    assert wrapper is structlog.make_filtering_bound_logger(30)


@pytest.mark.usefixtures("reset_structlog")
def test_configure_logging_writes_logfmt_with_library_name():
    stream = io.StringIO()
    config.configure_logging("info", stream=stream)

    structlog.get_logger("test").info("hello", instance_id="abc")

    line = stream.getvalue()
    assert "level=info" in line
    assert "lib=clouddb" in line
    assert "msg=hello" in line
    assert "instance_id=abc" in line


@pytest.mark.usefixtures("reset_structlog")
def test_configure_logging_filters_below_level():
    stream = io.StringIO()
    config.configure_logging("warning", stream=stream)

    structlog.get_logger("test").info("quiet")

    assert stream.getvalue() == ""
