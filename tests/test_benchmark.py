"""Test loopback benchmark"""

import json

import pytest

from rtransfer.benchmark.benchmark import TransferBenchmark


@pytest.mark.asyncio
async def test_resumed_benchmark_sends_remaining_half(temp_dir):
    benchmarker = TransferBenchmark(temp_dir / "bench")

    result = await benchmarker.test_transfer(4096, chunk_size=1024, iterations=2,
                                             resume_fraction=0.5)

    assert result.iterations == 2
    assert result.avg_bytes_sent == 2048
    assert result.avg_throughput_mb_s > 0


@pytest.mark.asyncio
async def test_results_are_saved(temp_dir):
    benchmarker = TransferBenchmark(temp_dir / "bench")
    await benchmarker.test_transfer(2048, chunk_size=512, iterations=1)

    json_file, csv_file = benchmarker.save_results()

    data = json.loads(json_file.read_text())
    assert data[0]['file_size'] == 2048
    assert csv_file.read_text().startswith('file_size,chunk_size')
