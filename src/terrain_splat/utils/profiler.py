"""Performance profiling utilities for terrain-splat."""

import time
import psutil
import functools
import gc
from typing import Dict, Any, Callable


class PerformanceProfiler:
    """Performance profiler for monitoring execution time and memory usage."""

    def __init__(self):
        self.metrics: Dict[str, Dict[str, Any]] = {}
        self.process = psutil.Process()

    def profile_function(self, name: str):
        """Decorator to profile function execution."""
        def decorator(func: Callable) -> Callable:
            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                gc.collect()

                start_time = time.time()
                start_memory = self.process.memory_info().rss

                result = func(*args, **kwargs)

                end_time = time.time()
                end_memory = self.process.memory_info().rss

                existing = self.metrics.get(name, {
                    'total_duration': 0.0,
                    'peak_memory': start_memory,
                    'calls': 0
                })

                self.metrics[name] = {
                    'duration': end_time - start_time,  # Last call duration
                    'total_duration': existing['total_duration'] + (end_time - start_time),
                    'memory_delta': end_memory - start_memory,  # Last call memory delta
                    'peak_memory': max(existing['peak_memory'], end_memory),
                    'calls': existing['calls'] + 1
                }
                return result
            return wrapper
        return decorator

    def get_summary(self) -> Dict[str, Any]:
        """Get performance summary."""
        if not self.metrics:
            return {
                'total_time': 0.0,
                'peak_memory_mb': 0.0,
                'by_function': {}
            }

        return {
            'total_time': sum(m['total_duration'] for m in self.metrics.values()),
            'peak_memory_mb': max(m['peak_memory'] for m in self.metrics.values()) / (1024 * 1024),
            'by_function': self.metrics
        }

    def format_summary(self, title: str = "Performance Summary") -> str:
        """Format the performance summary as printable lines."""
        summary = self.get_summary()

        lines = [
            f"📊 {title}",
            "=" * len(title) + "===",
            f"Total Time: {summary['total_time']:.2f}s",
            f"Peak Memory: {summary['peak_memory_mb']:.1f}MB",
        ]
        for name, metrics in summary['by_function'].items():
            lines.append(f"  {name}: {metrics['duration']:.3f}s, "
                         f"{metrics['memory_delta'] / (1024 * 1024):+.1f}MB, "
                         f"{metrics['calls']} call(s)")
        return "\n".join(lines)


def estimate_memory_usage(width: int, height: int, layers: int, mask_count: int = 4) -> float:
    """Rough peak memory estimate in MB for synthesizing a weight grid."""
    cells = width * height
    # float64 working buffers plus the float32 output grid
    grid_memory = cells * layers * (8 + 4)
    # Per-batch coordinate grids and samples are bounded by the full grid
    sample_memory = cells * 8 * (2 + mask_count)
    return (grid_memory + sample_memory) / (1024 * 1024)


def available_memory_mb() -> float:
    """Currently available system memory in MB."""
    return psutil.virtual_memory().available / (1024 * 1024)


def benchmark_function(func: Callable, *args, iterations: int = 5, **kwargs) -> Dict[str, float]:
    """Time repeated calls of ``func``, e.g. a synthesizer over a fixed grid.

    Returns average/min/max wall time in seconds, the average RSS change in MB
    and the iteration count.
    """
    if iterations <= 0:
        raise ValueError(f"iterations must be positive, got {iterations}")

    process = psutil.Process()
    durations = []
    memory_deltas = []

    for _ in range(iterations):
        gc.collect()
        start_memory = process.memory_info().rss
        start_time = time.time()

        func(*args, **kwargs)

        durations.append(time.time() - start_time)
        memory_deltas.append(process.memory_info().rss - start_memory)

    return {
        'avg_time': sum(durations) / iterations,
        'min_time': min(durations),
        'max_time': max(durations),
        'avg_memory_delta': sum(memory_deltas) / iterations / (1024 * 1024),
        'iterations': iterations,
    }
