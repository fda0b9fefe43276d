from .benchmark import TransferBenchmark, BenchmarkResult

__all__ = ['TransferBenchmark', 'BenchmarkResult']
