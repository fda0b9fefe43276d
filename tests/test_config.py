"""Test configuration loading"""

from pathlib import Path

import pytest

from rtransfer.config import TransferConfig, load_config


def test_defaults():
    config = TransferConfig()

    assert config.port == 9000
    assert config.chunk_size == 64 * 1024
    assert config.max_workers == 10
    assert config.checksum_algorithm == 'md5'
    assert not config.tls_enabled


def test_from_yaml_file(temp_dir):
    path = temp_dir / "rtransfer.yaml"
    path.write_text(
        "port: 9100\n"
        "output_dir: /srv/incoming\n"
        "tls_enabled: true\n"
        "cert_file: certs/server.crt\n"
        "unknown_key: 1\n"
    )

    config = TransferConfig.from_file(path)

    assert config.port == 9100
    assert config.output_dir == Path("/srv/incoming")
    assert config.tls_enabled
    assert config.cert_file == Path("certs/server.crt")


def test_missing_file_gives_defaults(temp_dir):
    assert TransferConfig.from_file(temp_dir / "absent.yaml") == TransferConfig()


def test_environment_overrides_file(temp_dir, monkeypatch):
    path = temp_dir / "rtransfer.yaml"
    path.write_text("port: 9100\nmax_workers: 4\n")
    monkeypatch.setenv("RTRANSFER_PORT", "9200")
    monkeypatch.setenv("RTRANSFER_TLS_ENABLED", "yes")
    monkeypatch.setenv("RTRANSFER_IDLE_TIMEOUT", "2.5")

    config = load_config(path)

    assert config.port == 9200
    assert config.max_workers == 4
    assert config.tls_enabled
    assert config.idle_timeout == 2.5


def test_save_and_reload(temp_dir):
    path = temp_dir / "saved.yaml"
    TransferConfig(port=9300, output_dir=temp_dir, key_password="pw").save(path)

    config = TransferConfig.from_file(path)

    assert config.port == 9300
    assert config.output_dir == temp_dir
    assert config.key_password == "pw"


@pytest.mark.parametrize("field, value", [
    ("chunk_size", 0),
    ("max_workers", 0),
    ("port", 70000),
    ("idle_timeout", -1),
])
def test_invalid_values(field, value):
    with pytest.raises(ValueError):
        TransferConfig(**{field: value})
