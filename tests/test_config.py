"""Tests for config loading and the Database target descriptor."""

import textwrap

import pytest
from pydantic import ValidationError

from azure_sql_exporter.config import ConfigError, Database, load_config, parse_config

VALID_CONFIG = textwrap.dedent("""
    global:
      timezone: Europe/London
      log_level: DEBUG
      log_scraped_metrics: true
    databases:
      - name: Sales
        server: a
        user: exporter
        password: s3cr3t
        port: 1433
      - name: Inventory
        server: b
        user: exporter
        password: hunter2
        port: "1434"
""")


def write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return path


def test_load_config_valid(tmp_path):
    config = load_config(write(tmp_path, VALID_CONFIG))

    assert [db.name for db in config.databases] == ["Sales", "Inventory"]
    assert config.databases[1].port == 1434
    assert config.timezone == "Europe/London"
    assert config.log_level == "debug"
    assert config.log_scraped_metrics is True


def test_load_config_defaults_global(tmp_path):
    text = "databases:\n  - {name: d, server: s, user: u, password: p, port: 1433}\n"
    config = load_config(write(tmp_path, text))

    assert config.timezone == "system"
    assert config.log_level == "info"
    assert config.log_scraped_metrics is False


def test_load_config_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="Unable to read file"):
        load_config(tmp_path / "nope.yaml")


def test_load_config_invalid_yaml(tmp_path):
    with pytest.raises(ConfigError, match="Unable to parse file"):
        load_config(write(tmp_path, "databases: [unclosed"))


@pytest.mark.parametrize("raw", [
    None,
    [],
    {},
    {"databases": []},
    {"databases": "Sales"},
])
def test_parse_config_rejects_bad_target_list(raw):
    with pytest.raises(ConfigError):
        parse_config(raw)


@pytest.mark.parametrize("field", ["name", "server", "user", "password", "port"])
def test_parse_config_requires_every_field(field):
    entry = {"name": "d", "server": "s", "user": "u", "password": "p", "port": 1433}
    del entry[field]

    with pytest.raises(ConfigError, match=rf"databases\[0\]\.{field}"):
        parse_config({"databases": [entry]})


@pytest.mark.parametrize("port", ["abc", 0, 70000, True])
def test_parse_config_rejects_bad_port(port):
    entry = {"name": "d", "server": "s", "user": "u", "password": "p", "port": port}

    with pytest.raises(ConfigError, match="port"):
        parse_config({"databases": [entry]})


def test_parse_config_rejects_unknown_timezone_and_level():
    entry = {"name": "d", "server": "s", "user": "u", "password": "p", "port": 1433}

    with pytest.raises(ConfigError, match="timezone"):
        parse_config({"global": {"timezone": "Mars/Olympus"}, "databases": [entry]})
    with pytest.raises(ConfigError, match="log level"):
        parse_config({"global": {"log_level": "loud"}, "databases": [entry]})


def test_config_error_never_contains_password():
    entry = {"name": "d", "server": "s", "user": "u", "password": "TopSecret!", "port": "x"}

    with pytest.raises(ConfigError) as excinfo:
        parse_config({"databases": [entry]})

    assert "TopSecret!" not in str(excinfo.value)


def test_load_config_does_not_log_password(tmp_path, caplog):
    caplog.set_level("INFO")
    load_config(write(tmp_path, VALID_CONFIG))

    assert "s3cr3t" not in caplog.text
    assert "hunter2" not in caplog.text
    assert "server=a" in caplog.text


def test_database_dsn_includes_password(sales_db):
    assert sales_db.dsn() == "server=a;user id=exporter;password=s3cr3t-Pa55;port=1433;database=Sales"
    assert sales_db.connect_kwargs()["password"] == "s3cr3t-Pa55"


def test_database_string_forms_redact_password(sales_db):
    for text in (str(sales_db), repr(sales_db), f"{sales_db}", "%s" % (sales_db,), f"{sales_db!r}"):
        assert "s3cr3t-Pa55" not in text
        assert "password=******" in text


def test_database_redact(sales_db):
    message = "Login failed for user 'exporter' with password 's3cr3t-Pa55'"

    assert sales_db.redact(message) == "Login failed for user 'exporter' with password '******'"
    assert sales_db.redact(RuntimeError(message)).count("******") == 1


def test_database_is_immutable(sales_db):
    with pytest.raises(ValidationError):
        sales_db.password = "other"


def test_database_labels(sales_db):
    assert sales_db.labels() == ("a", "Sales")


def test_parse_config_rejects_duplicate_targets():
    entries = [
        {"name": "Sales", "server": "a", "user": "u", "password": "p", "port": 1433},
        {"name": "Inventory", "server": "a", "user": "u", "password": "p", "port": 1433},
        {"name": "Sales", "server": "a", "user": "u", "password": "p", "port": 1434},
    ]

    with pytest.raises(ConfigError, match=r"databases\[0\] and databases\[2\]"):
        parse_config({"databases": entries})


def test_parse_config_allows_same_name_on_different_servers():
    entries = [
        {"name": "Sales", "server": "a", "user": "u", "password": "p", "port": 1433},
        {"name": "Sales", "server": "b", "user": "u", "password": "p", "port": 1433},
    ]

    config = parse_config({"databases": entries})

    assert [db.labels() for db in config.databases] == [("a", "Sales"), ("b", "Sales")]


def test_parse_config_keeps_numeric_password_as_text():
    entry = {"name": "d", "server": "s", "user": "u", "password": 12345, "port": 1433}

    config = parse_config({"databases": [entry]})

    assert config.databases[0].password == "12345"


def test_validation_error_masks_password():
    entry = {"name": "d", "server": "s", "user": "u", "password": "Secret-9", "port": 1433}

    with pytest.raises(ConfigError) as excinfo:
        parse_config({"databases": [entry, dict(entry)]})

    assert "Secret-9" not in str(excinfo.value)
