"""
Reconnect Policy and Endpoint Tests
===================================
"""

import pytest

from signstream.stream.endpoint import build_stream_url, join_endpoint, to_websocket_base
from signstream.stream.reconnect import ReconnectPolicy


class TestReconnectPolicy:
    """Delay and attempt budget."""

    def test_default_is_fixed_three_seconds_unlimited(self):
        policy = ReconnectPolicy()

        assert [policy.delay_for(n) for n in (1, 2, 10)] == [3.0, 3.0, 3.0]
        assert policy.allows(1000)

    def test_exponential_capped(self):
        policy = ReconnectPolicy(base_delay=3.0, strategy="exponential", max_delay=30.0)

        delays = [policy.delay_for(n) for n in range(1, 7)]

        assert delays == [3.0, 6.0, 12.0, 24.0, 30.0, 30.0]

    def test_jitter_bounded(self):
        policy = ReconnectPolicy(base_delay=4.0, jitter=0.25, max_delay=30.0)

        low = policy.delay_for(1, rand=lambda a, b: a)
        high = policy.delay_for(1, rand=lambda a, b: b)

        assert low == pytest.approx(3.0)
        assert high == pytest.approx(5.0)

    def test_jitter_never_exceeds_max_delay(self):
        policy = ReconnectPolicy(
            base_delay=3.0, strategy="exponential", max_delay=10.0, jitter=0.5
        )

        assert policy.delay_for(8, rand=lambda a, b: b) == 10.0

    def test_random_jitter_within_range(self):
        policy = ReconnectPolicy(base_delay=2.0, jitter=0.1)

        for _ in range(50):
            assert 1.8 <= policy.delay_for(1) <= 2.2

    def test_attempts_bounded(self):
        policy = ReconnectPolicy(max_attempts=3)

        assert policy.allows(3)
        assert not policy.allows(4)

    @pytest.mark.parametrize("kwargs", [
        {"base_delay": -1.0},
        {"base_delay": 5.0, "max_delay": 1.0},
        {"jitter": 1.0},
        {"max_attempts": -1},
        {"strategy": "linear"},
    ])
    def test_invalid_policy_rejected(self, kwargs):
        with pytest.raises(ValueError):
            ReconnectPolicy(**kwargs)

    def test_attempt_numbers_start_at_one(self):
        with pytest.raises(ValueError):
            ReconnectPolicy().delay_for(0)


class TestEndpoint:
    """Stream URL construction."""

    @pytest.mark.parametrize("base, expected", [
        ("http://localhost:8000", "ws://localhost:8000"),
        ("https://api.example.com/", "wss://api.example.com"),
        ("wss://api.example.com/v2", "wss://api.example.com/v2"),
    ])
    def test_scheme_rewritten(self, base, expected):
        assert to_websocket_base(base) == expected

    @pytest.mark.parametrize("base", ["localhost:8000", "ftp://host", ""])
    def test_invalid_base_rejected(self, base):
        with pytest.raises(ValueError):
            to_websocket_base(base)

    def test_join_endpoint(self):
        url = join_endpoint("https://api.example.com/", "/api/v1/practice/psl-predict")

        assert url == "wss://api.example.com/api/v1/practice/psl-predict"

    def test_build_stream_url(self):
        endpoint = "ws://localhost:8000/practice/live-predict"

        assert build_stream_url(endpoint, "mini") == f"{endpoint}?model_type=mini"
        assert (
            build_stream_url(endpoint, "pro", "daily words")
            == f"{endpoint}?model_type=pro&category=daily+words"
        )
