
import asyncio
import argparse
import logging
import sys
from pathlib import Path

from rtransfer import __version__
from rtransfer.config import load_config, TransferConfig
from rtransfer.errors import TransferError, ValidationFailure
from rtransfer.server.server import TransferServer
from rtransfer.client.client import TransferClient
from rtransfer.crypto.keystore import CertificateStore
from rtransfer.benchmark.benchmark import TransferBenchmark
from rtransfer.utils import format_size

logger = logging.getLogger(__name__)


def setup_logging(level: str = 'INFO', log_file: str = None):
    """Console logging plus an optional log file"""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def build_config(args) -> TransferConfig:
    """Defaults < config file < environment < command-line flags"""
    config = load_config(Path(args.config) if args.config else None)

    overrides = {
        'host': args.host,
        'bind_host': args.bind,
        'port': args.port,
        'output_dir': args.output_dir,
        'max_workers': args.workers,
        'chunk_size': args.chunk_size,
        'checksum_algorithm': args.checksum,
        'idle_timeout': args.idle_timeout,
        'cert_file': args.cert,
        'key_file': args.key,
        'key_password': args.key_password,
        'ca_file': args.cafile,
        'log_file': args.log_file,
    }
    values = config.to_dict()
    values.update({k: v for k, v in overrides.items() if v is not None})
    if args.ssl:
        values['tls_enabled'] = True
    if args.verify_hostname:
        values['verify_hostname'] = True
    if args.debug:
        values['log_level'] = 'DEBUG'
    elif args.quiet:
        values['log_level'] = 'WARNING'

    return TransferConfig(**values)


async def run_server(config: TransferConfig) -> int:
    """Run server mode"""
    logger.info(f"=== Starting rtransfer server v{__version__} ===")

    server = TransferServer(config)
    try:
        await server.run()
    except asyncio.CancelledError:
        logger.info("Server shutdown requested")
    return 0


async def run_send(config: TransferConfig, file_path: str) -> int:
    """Run send mode"""
    logger.info(f"=== Starting rtransfer client v{__version__} ===")

    client = TransferClient(config)
    result = await client.send(file_path)

    logger.info(
        f"Sent {format_size(result.bytes_transferred)} "
        f"(resumed from {format_size(result.resume_offset)})"
    )
    return 0


async def run_gencert(args) -> int:
    """Generate a self-signed certificate for the server"""
    store = CertificateStore(Path(args.cert_dir))
    hostnames = args.hostname or ['localhost', '127.0.0.1']

    cert_file, key_file = store.generate_and_store(
        common_name=hostnames[0],
        hostnames=hostnames,
        days=args.days,
        key_password=args.key_password
    )

    logger.info(f"Certificate: {cert_file}")
    logger.info(f"Private key: {key_file}")
    logger.info(f"Fingerprint: {store.fingerprint()}")
    logger.info("Give the certificate file to senders as --cafile")
    return 0


async def run_benchmark(config: TransferConfig, args) -> int:
    """Run benchmark mode"""
    logger.info("=== Starting rtransfer benchmark ===")

    benchmarker = TransferBenchmark(output_dir=Path(args.output))

    if args.sizes:
        sizes = [int(float(s) * 1024 * 1024) for s in args.sizes]
        await benchmarker.test_all_sizes(sizes, config.chunk_size, args.iterations)
    else:
        await benchmarker.test_all_sizes(chunk_size=config.chunk_size, iterations=args.iterations)

    benchmarker.save_results()
    if not args.no_plot:
        benchmarker.generate_report()

    for result in benchmarker.results:
        logger.info(
            f"{format_size(result.file_size)} resume {result.resume_fraction:.0%}: "
            f"{result.avg_throughput_mb_s:.1f} MB/s"
        )

    logger.info("Benchmark completed")
    return 0


def create_parser():
    """Create argument parser"""
    parser = argparse.ArgumentParser(
        description='rtransfer - resumable single-file transfer over TCP',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start server
  rtransfer server --port 9000 --output-dir ./received

  # Send a file (resumes automatically if interrupted earlier)
  rtransfer send ./big.iso --host 192.168.1.20 --port 9000

  # TLS
  rtransfer gencert --cert-dir ./certs --hostname fileserver.local
  rtransfer server --ssl --cert ./certs/server.crt --key ./certs/server.key
  rtransfer send ./big.iso --ssl --cafile ./certs/server.crt

  # Benchmark loopback throughput (sizes in MB)
  rtransfer benchmark --sizes 1 16 64
        """
    )

    # Mode selection
    parser.add_argument(
        'mode',
        choices=['server', 'send', 'gencert', 'benchmark'],
        help='Execution mode'
    )
    parser.add_argument(
        'file',
        nargs='?',
        help='File to send (send mode)'
    )

    # Common arguments
    parser.add_argument('--config', help='YAML configuration file')
    parser.add_argument('--host', help='Server hostname (default: localhost)')
    parser.add_argument('--bind', help='Server listen address (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, help='Server port (default: 9000)')
    parser.add_argument('--output-dir', help='Where the server saves files (default: .)')
    parser.add_argument('--workers', type=int, help='Concurrent transfers served (default: 10)')
    parser.add_argument('--chunk-size', type=int, help='I/O chunk size in bytes (default: 65536)')
    parser.add_argument('--checksum', help='hashlib algorithm for integrity checks (default: md5)')
    parser.add_argument('--idle-timeout', type=float, help='Seconds the server waits on a silent client, 0 disables (default: 300)')

    # TLS arguments
    parser.add_argument('--ssl', action='store_true', help='Enable SSL/TLS encryption')
    parser.add_argument('--cert', help='Server certificate (PEM)')
    parser.add_argument('--key', help='Server private key (PEM)')
    parser.add_argument('--key-password', help='Private key passphrase')
    parser.add_argument('--cafile', help='Certificate(s) the client trusts (PEM)')
    parser.add_argument(
        '--verify-hostname',
        action='store_true',
        help='Check the server certificate matches --host'
    )

    # Certificate generation
    parser.add_argument('--cert-dir', default='./certs', help='gencert output directory (default: ./certs)')
    parser.add_argument('--hostname', action='append', help='Name or IP for the certificate (repeatable)')
    parser.add_argument('--days', type=int, default=365, help='Certificate validity in days (default: 365)')

    # Benchmark-specific arguments
    parser.add_argument('--output', default='./benchmarks', help='Benchmark output directory (default: ./benchmarks)')
    parser.add_argument('--sizes', nargs='+', help='File sizes to benchmark, in MB')
    parser.add_argument('--iterations', type=int, default=5, help='Iterations per size (default: 5)')
    parser.add_argument('--no-plot', action='store_true', help='Skip generating plots')

    # Logging
    parser.add_argument('--log-file', help='Log file (default: rtransfer.log)')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--quiet', action='store_true', help='Minimal output')

    return parser


async def main(argv=None) -> int:
    """Main entry point; returns the process exit status"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.mode == 'send' and not args.file:
        parser.error("send mode requires a file")

    try:
        config = build_config(args)
    except ValueError as e:
        parser.error(str(e))

    setup_logging(config.log_level, config.log_file)

    try:
        if args.mode == 'server':
            return await run_server(config)
        elif args.mode == 'send':
            return await run_send(config, args.file)
        elif args.mode == 'gencert':
            return await run_gencert(args)
        elif args.mode == 'benchmark':
            return await run_benchmark(config, args)
    except ValidationFailure as e:
        logger.error(f"Error: {e}")
        return 1
    except TransferError as e:
        logger.error(f"✗ Error: {e}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    return 0


def cli():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == '__main__':
    cli()
