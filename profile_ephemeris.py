"""
Profile the ephemeris calculator to identify performance bottlenecks.
"""

import cProfile
import pstats
import io
import time
from datetime import date, datetime

from ephemeris import (
    Body,
    attach_natal_aspects,
    calculate_ephemeris,
    format_ephemeris_text,
    generate_ephemeris,
    positions_at,
)

ALL_BODIES = list(Body)
START = date(2025, 1, 1)
END = date(2025, 12, 31)
BIRTH = datetime(1990, 6, 15, 14, 30, 0)


def profile_ephemeris_calculation():
    """Profile a one-year calculation with detailed timing."""

    print("=" * 75)
    print("EPHEMERIS PERFORMANCE PROFILING")
    print("=" * 75)
    print()

    start_total = time.perf_counter()

    profiler = cProfile.Profile()
    profiler.enable()

    # Natal positions
    start = time.perf_counter()
    natal_positions = positions_at(BIRTH, ALL_BODIES, 300)
    natal_time = (time.perf_counter() - start) * 1000

    # Transit series
    start = time.perf_counter()
    records = generate_ephemeris(START, END, ALL_BODIES)
    series_time = (time.perf_counter() - start) * 1000

    # Natal aspects
    start = time.perf_counter()
    records = [attach_natal_aspects(r, natal_positions, {0, 60, 90, 120, 180}) for r in records]
    natal_aspects_time = (time.perf_counter() - start) * 1000

    profiler.disable()
    total_time = (time.perf_counter() - start_total) * 1000

    transit_count = sum(len(r.transit_aspects) for r in records)
    natal_count = sum(len(r.natal_aspects) for r in records)

    print("TIMING BREAKDOWN (milliseconds)")
    print("-" * 75)
    print(f"{'Operation':<40} {'Time (ms)':>12} {'Percent':>10}")
    print("-" * 75)
    print(f"{'Natal positions ({} bodies)'.format(len(natal_positions)):<40} {natal_time:>12.3f} {natal_time/total_time*100:>9.1f}%")
    print(f"{'Transit series ({} days, {} aspects)'.format(len(records), transit_count):<40} {series_time:>12.3f} {series_time/total_time*100:>9.1f}%")
    print(f"{'Natal aspects ({} found)'.format(natal_count):<40} {natal_aspects_time:>12.3f} {natal_aspects_time/total_time*100:>9.1f}%")
    print("-" * 75)
    print(f"{'TOTAL':<40} {total_time:>12.3f} {'100.0%':>10}")
    print()

    print("=" * 75)
    print("DETAILED FUNCTION CALL STATISTICS (Top 20 by cumulative time)")
    print("=" * 75)

    s = io.StringIO()
    ps = pstats.Stats(profiler, stream=s)
    ps.strip_dirs()
    ps.sort_stats('cumulative')
    ps.print_stats(20)
    print(s.getvalue())

    return records


def benchmark_multiple_runs(num_runs=20, days=31):
    """Benchmark repeated month-sized calculations and return the timings."""

    print("=" * 75)
    print(f"BENCHMARK: {num_runs} CALCULATIONS OF {days} DAYS")
    print("=" * 75)
    print()

    end = date.fromordinal(START.toordinal() + days - 1)
    times = []

    for _ in range(num_runs):
        start = time.perf_counter()
        calculate_ephemeris(
            START,
            end,
            bodies=ALL_BODIES,
            natal_instant=BIRTH,
            natal_bodies=ALL_BODIES,
            selected_angles={0, 60, 90, 120, 180},
            timezone='Europe/Paris',
            natal_timezone='America/New_York',
        )
        times.append((time.perf_counter() - start) * 1000)

    stats = {
        'runs': num_runs,
        'days': days,
        'avg_ms': sum(times) / len(times),
        'min_ms': min(times),
        'max_ms': max(times),
    }

    print(f"Average time per calculation: {stats['avg_ms']:.3f} ms")
    print(f"Minimum time:                 {stats['min_ms']:.3f} ms")
    print(f"Maximum time:                 {stats['max_ms']:.3f} ms")
    print(f"Calculations per second:      {1000/max(stats['avg_ms'], 1e-9):.1f}")
    print()
    return stats


if __name__ == "__main__":
    records = profile_ephemeris_calculation()
    print(format_ephemeris_text(records[:3]))

    print()
    benchmark_multiple_runs()
