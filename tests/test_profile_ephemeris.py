from profile_ephemeris import benchmark_multiple_runs


def test_benchmark_reports_timings():
    stats = benchmark_multiple_runs(num_runs=2, days=3)
    assert stats['runs'] == 2
    assert stats['days'] == 3
    assert 0 <= stats['min_ms'] <= stats['avg_ms'] <= stats['max_ms']
