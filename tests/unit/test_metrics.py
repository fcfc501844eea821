"""Unit tests for process capture metrics."""

from concurrent.futures import ThreadPoolExecutor

from sitecap.metrics import CaptureMetrics


class TestCaptureMetrics:
    """Tests for CaptureMetrics."""

    def test_render_initial(self):
        metrics = CaptureMetrics()
        assert metrics.render() == (
            "sitecap_requests_total 0\n"
            "sitecap_requests_success_total 0\n"
            "sitecap_requests_failed_total 0\n"
            "sitecap_duration_seconds_total 0.000000\n"
        )

    def test_counts_and_duration(self):
        metrics = CaptureMetrics()
        metrics.record_start()
        metrics.record_success(1.5)
        metrics.record_start()
        metrics.record_failure(0.25)

        assert metrics.total_requests == 2
        assert metrics.success_requests == 1
        assert metrics.failed_requests == 1
        assert metrics.total_duration_seconds == 1.75
        assert "sitecap_duration_seconds_total 1.750000\n" in metrics.render()

    def test_series_names_are_fixed(self):
        assert CaptureMetrics().series_names == [
            "sitecap_requests_total",
            "sitecap_requests_success_total",
            "sitecap_requests_failed_total",
            "sitecap_duration_seconds_total",
        ]

    def test_concurrent_increments(self):
        metrics = CaptureMetrics()

        def work(_):
            for _ in range(500):
                metrics.record_start()
                metrics.record_success(0.0)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(work, range(8)))

        assert metrics.total_requests == 4000
        assert metrics.success_requests == 4000

    def test_reset(self):
        metrics = CaptureMetrics()
        metrics.record_start()
        metrics.record_failure(2.0)

        metrics.reset()

        assert metrics.total_requests == 0
        assert metrics.total_duration_seconds == 0.0
