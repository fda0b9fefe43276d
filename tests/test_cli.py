"""Test command-line entry point"""

import pytest

from main import create_parser, build_config, main


def test_send_arguments():
    args = create_parser().parse_args(
        ['send', 'big.iso', '--host', 'files.local', '--port', '9100', '--ssl',
         '--cafile', 'server.crt']
    )

    config = build_config(args)

    assert args.file == 'big.iso'
    assert config.host == 'files.local'
    assert config.port == 9100
    assert config.tls_enabled
    assert str(config.ca_file) == 'server.crt'


def test_server_arguments(temp_dir):
    args = create_parser().parse_args(
        ['server', '--output-dir', str(temp_dir), '--workers', '3',
         '--idle-timeout', '30', '--debug']
    )

    config = build_config(args)

    assert config.output_dir == temp_dir
    assert config.max_workers == 3
    assert config.idle_timeout == 30.0
    assert config.log_level == 'DEBUG'


def test_flags_override_config_file(temp_dir):
    path = temp_dir / "rtransfer.yaml"
    path.write_text("port: 9100\nchunk_size: 1024\n")
    args = create_parser().parse_args(['server', '--config', str(path), '--port', '9500'])

    config = build_config(args)

    assert config.port == 9500
    assert config.chunk_size == 1024


@pytest.mark.asyncio
async def test_send_requires_file():
    with pytest.raises(SystemExit):
        await main(['send'])


@pytest.mark.asyncio
async def test_missing_file_exits_non_zero(temp_dir, monkeypatch):
    monkeypatch.chdir(temp_dir)

    assert await main(['send', str(temp_dir / 'missing.bin'), '--port', '1']) == 1


@pytest.mark.asyncio
async def test_send_success_exits_zero(server, make_file, temp_dir, output_dir,
                                       monkeypatch, sample_content):
    monkeypatch.chdir(temp_dir)
    source = make_file("cli.bin", sample_content)

    status = await main(['send', str(source), '--host', '127.0.0.1',
                         '--port', str(server.bound_port), '--quiet'])

    assert status == 0
    assert (output_dir / "cli.bin").read_bytes() == sample_content


@pytest.mark.asyncio
async def test_gencert(temp_dir, monkeypatch):
    monkeypatch.chdir(temp_dir)

    status = await main(['gencert', '--cert-dir', str(temp_dir / 'certs'),
                         '--hostname', 'files.local', '--days', '2'])

    assert status == 0
    assert (temp_dir / 'certs' / 'server.crt').exists()
    assert (temp_dir / 'certs' / 'server.key').exists()
