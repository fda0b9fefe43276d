import asyncio
import json
import os
import tempfile
import time
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Iterable, List
import logging

import psutil

from ..config import TransferConfig
from ..client.client import TransferClient
from ..network.chunks import CHUNK_SIZE
from ..server.server import TransferServer
from ..utils import format_size

logger = logging.getLogger(__name__)

DEFAULT_SIZES = (1024 * 1024, 16 * 1024 * 1024, 64 * 1024 * 1024)


@dataclass
class BenchmarkResult:
    """Single benchmark result"""
    file_size: int
    chunk_size: int
    resume_fraction: float
    iterations: int
    avg_duration_ms: float
    min_duration_ms: float
    max_duration_ms: float
    avg_throughput_mb_s: float
    avg_bytes_sent: float
    cpu_usage_avg: float
    cpu_usage_max: float
    memory_mb_avg: float
    memory_mb_max: float
    timestamp: float


class TransferBenchmark:
    """
    Loopback throughput benchmark
    Runs a real server and client in this process over 127.0.0.1
    """

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.results: List[BenchmarkResult] = []

        # Process for resource monitoring
        self.process = psutil.Process()

    async def test_transfer(self, file_size: int, chunk_size: int = CHUNK_SIZE,
                            iterations: int = 5,
                            resume_fraction: float = 0.0) -> BenchmarkResult:
        """
        Benchmark one file size

        With resume_fraction > 0 the receiver is seeded with that share of
        the file as a partial before every iteration, so only the rest is sent.
        """
        logger.info(
            f"Benchmarking {format_size(file_size)} "
            f"(chunk {format_size(chunk_size)}, resume {resume_fraction:.0%})"
        )

        durations = []
        bytes_sent = []
        cpu_usages = []
        memory_usages = []

        with tempfile.TemporaryDirectory(prefix='rtransfer-bench-') as tmp:
            tmp = Path(tmp)
            source = tmp / 'payload.bin'
            self._write_payload(source, file_size)

            server_config = TransferConfig(
                bind_host='127.0.0.1', port=0,
                output_dir=tmp / 'received', chunk_size=chunk_size
            )
            server = TransferServer(server_config)
            port = await server.start()

            client = TransferClient(TransferConfig(
                host='127.0.0.1', port=port, chunk_size=chunk_size
            ))

            try:
                for _ in range(iterations):
                    if resume_fraction > 0:
                        self._seed_partial(source, server.store.partial_path(source.name),
                                           int(file_size * resume_fraction))

                    cpu_before = self.process.cpu_percent()
                    mem_before = self.process.memory_info().rss / 1024 / 1024

                    start = time.perf_counter()
                    result = await client.send(source)
                    durations.append((time.perf_counter() - start) * 1000)
                    bytes_sent.append(result.bytes_transferred)

                    cpu_after = self.process.cpu_percent()
                    mem_after = self.process.memory_info().rss / 1024 / 1024
                    cpu_usages.append((cpu_before + cpu_after) / 2)
                    memory_usages.append(mem_after - mem_before)

                    # Keep every iteration writing the same final name
                    received = server.store.final_path(source.name)
                    if received.exists():
                        received.unlink()

                    await asyncio.sleep(0.05)
            finally:
                await server.stop()

        avg_duration = sum(durations) / len(durations)
        avg_sent = sum(bytes_sent) / len(bytes_sent)

        result = BenchmarkResult(
            file_size=file_size,
            chunk_size=chunk_size,
            resume_fraction=resume_fraction,
            iterations=iterations,
            avg_duration_ms=avg_duration,
            min_duration_ms=min(durations),
            max_duration_ms=max(durations),
            avg_throughput_mb_s=(avg_sent / 1024 / 1024) / (avg_duration / 1000) if avg_duration else 0.0,
            avg_bytes_sent=avg_sent,
            cpu_usage_avg=sum(cpu_usages) / len(cpu_usages),
            cpu_usage_max=max(cpu_usages),
            memory_mb_avg=sum(memory_usages) / len(memory_usages),
            memory_mb_max=max(memory_usages),
            timestamp=time.time()
        )

        self.results.append(result)
        return result

    async def test_all_sizes(self, sizes: Iterable[int] = DEFAULT_SIZES,
                             chunk_size: int = CHUNK_SIZE, iterations: int = 5):
        """Benchmark fresh and half-resumed transfers for every size"""
        sizes = list(sizes)
        total = len(sizes) * 2
        count = 0

        for size in sizes:
            for fraction in (0.0, 0.5):
                count += 1
                logger.info(f"Progress: {count}/{total}")
                await self.test_transfer(size, chunk_size, iterations, fraction)

        logger.info(f"Completed {len(self.results)} benchmarks")

    def save_results(self):
        """Save benchmark results to JSON and CSV"""
        timestamp = int(time.time())

        json_file = self.output_dir / f"benchmark_{timestamp}.json"
        with open(json_file, 'w') as f:
            json.dump([asdict(r) for r in self.results], f, indent=2)
        logger.info(f"Saved results to {json_file}")

        csv_file = self.output_dir / f"benchmark_{timestamp}.csv"
        with open(csv_file, 'w') as f:
            if self.results:
                fields = asdict(self.results[0]).keys()
                f.write(','.join(fields) + '\n')
                for result in self.results:
                    f.write(','.join(str(v) for v in asdict(result).values()) + '\n')
        logger.info(f"Saved CSV to {csv_file}")

        return json_file, csv_file

    def generate_report(self):
        """Plot throughput per file size (needs the benchmark extra)"""
        if not self.results:
            logger.warning("No results to generate report")
            return None

        try:
            import matplotlib
            matplotlib.use('Agg')
            import matplotlib.pyplot as plt
        except ImportError:
            logger.warning("matplotlib not installed, skipping visualization")
            return None

        fig, ax = plt.subplots(figsize=(10, 6))
        for fraction in sorted({r.resume_fraction for r in self.results}):
            rows = [r for r in self.results if r.resume_fraction == fraction]
            ax.plot(
                [r.file_size / 1024 / 1024 for r in rows],
                [r.avg_throughput_mb_s for r in rows],
                marker='o', label=f"resume {fraction:.0%}"
            )
        ax.set_title('Loopback Transfer Throughput')
        ax.set_xlabel('File size (MB)')
        ax.set_ylabel('Throughput (MB/s)')
        ax.legend()

        plot_file = self.output_dir / f"benchmark_plot_{int(time.time())}.png"
        fig.savefig(plot_file, dpi=150, bbox_inches='tight')
        plt.close(fig)
        logger.info(f"Saved plot to {plot_file}")
        return plot_file

    @staticmethod
    def _write_payload(path: Path, size: int):
        block = 1024 * 1024
        with open(path, 'wb') as f:
            remaining = size
            while remaining > 0:
                n = min(block, remaining)
                f.write(os.urandom(n))
                remaining -= n

    @staticmethod
    def _seed_partial(source: Path, partial: Path, length: int):
        with open(source, 'rb') as src, open(partial, 'wb') as dst:
            dst.write(src.read(length))
