# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
import pytest

from request_optimizer.scheduler.config import EngineConfig


class TestEngineConfig:
    def test_default_values(self):
        """Test default configuration values."""
        config = EngineConfig()

        # Admission
        assert config.max_concurrent_requests == 6
        assert config.max_queue_size == 1000
        assert config.overflow_policy == "reject"

        # Request Processing
        assert config.request_timeout == 30.0
        assert config.default_headers == {"Content-Type": "application/json"}

        # Retry / Backoff
        assert config.enable_retry is True
        assert config.max_retries == 3
        assert config.retry_base_delay == 1.0
        assert config.backoff_multiplier == 2.0
        assert config.max_backoff == 60.0
        assert config.retry_jitter == 0.0

        # Caching
        assert config.enable_caching is True
        assert config.cache_ttl == 300.0
        assert config.enable_conditional_revalidation is True

        # Connection Quality
        assert config.enable_quality_monitor is True
        assert config.quality_window_size == 10
        assert config.probe_url is None

        # Metrics
        assert config.metrics_enabled is True
        assert config.prometheus_enabled is False
        assert config.start_prometheus_server is False
        assert config.prometheus_host == "127.0.0.1"
        assert config.prometheus_port == 9090

    def test_default_headers_not_shared(self):
        """Each config gets its own default header dict."""
        a = EngineConfig()
        b = EngineConfig()
        a.default_headers["X-Test"] = "1"
        assert "X-Test" not in b.default_headers

    @pytest.mark.parametrize(
        "kwargs,match",
        [
            ({"max_concurrent_requests": 0}, "max_concurrent_requests"),
            ({"max_queue_size": 0}, "max_queue_size"),
            ({"overflow_policy": "drop_newest"}, "overflow_policy"),
            ({"request_timeout": 0}, "request_timeout"),
            ({"max_retries": -1}, "max_retries"),
            ({"retry_base_delay": -0.5}, "retry_base_delay"),
            ({"backoff_multiplier": 0.5}, "backoff_multiplier"),
            ({"retry_base_delay": 10.0, "max_backoff": 5.0}, "max_backoff"),
            ({"retry_jitter": -1}, "retry_jitter"),
            ({"cache_ttl": 0}, "cache_ttl"),
            ({"max_cache_entries": 0}, "max_cache_entries"),
            ({"quality_window_size": 0}, "quality_window_size"),
            ({"quality_check_interval": 0}, "quality_check_interval"),
            ({"idle_probe_after": 0}, "idle_probe_after"),
            ({"probe_timeout": 0}, "probe_timeout"),
            ({"history_size": -1}, "history_size"),
            ({"max_batches_retained": 0}, "max_batches_retained"),
            ({"prometheus_port": 0}, "prometheus_port"),
            ({"prometheus_port": 70000}, "prometheus_port"),
        ],
    )
    def test_validation(self, kwargs, match):
        """Invalid values are rejected in __post_init__."""
        with pytest.raises(ValueError, match=match):
            EngineConfig(**kwargs)

    def test_unbounded_cache_allowed(self):
        config = EngineConfig(max_cache_entries=None)
        assert config.max_cache_entries is None
