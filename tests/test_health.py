"""Tests for advisory provider health: marking policy, tracker state, active probes."""
from __future__ import annotations

from chainchirp.core.errors import NormalizationError
from chainchirp.providers.health import HealthPolicy, HealthTracker
from tests.fakes import FakeTransport, http_error, make_spec, network_error


class TestHealthPolicy:
    def test_default_marks_server_and_auth_statuses(self):
        policy = HealthPolicy()
        for status in (401, 403, 404, 500, 502, 503, 504):
            assert policy.marks_unhealthy(http_error("p", status))
        for status in (400, 429):
            assert not policy.marks_unhealthy(http_error("p", status))

    def test_default_network_and_normalization(self):
        policy = HealthPolicy()
        assert policy.marks_unhealthy(network_error("p", "ECONNRESET"))
        assert not policy.marks_unhealthy(NormalizationError("bad body", provider="p"))
        assert not policy.marks_unhealthy(ValueError("x"))

    def test_from_config_overrides(self):
        policy = HealthPolicy.from_config(
            {
                "health": {
                    "unhealthy_status_codes": [500, "503"],
                    "mark_network_errors": False,
                    "mark_normalization_errors": True,
                }
            }
        )
        assert policy.unhealthy_status_codes == frozenset({500, 503})
        assert not policy.marks_unhealthy(http_error("p", 404))
        assert not policy.marks_unhealthy(network_error("p", "ETIMEDOUT"))
        assert policy.marks_unhealthy(NormalizationError("bad body", provider="p"))

    def test_from_config_without_section_uses_defaults(self):
        assert HealthPolicy.from_config({}) == HealthPolicy()


class TestHealthTracker:
    def test_registered_providers_start_healthy(self):
        tracker = HealthTracker([make_spec("a", 1), make_spec("b", 2)])
        assert tracker.snapshot() == {"a": True, "b": True}

    def test_unknown_provider_is_not_healthy(self):
        assert HealthTracker().is_healthy("ghost") is False

    def test_mark_unhealthy_then_healthy(self):
        tracker = HealthTracker([make_spec("a", 1)])

        tracker.mark_unhealthy("a", "boom")
        tracker.mark_unhealthy("a", "boom again")
        details = tracker.details()["a"]
        assert details.healthy is False
        assert details.fail_count == 2
        assert details.last_error == "boom again"

        tracker.mark_healthy("a")
        details = tracker.details()["a"]
        assert details.healthy is True
        assert details.fail_count == 0
        assert details.last_error is None
        assert details.last_ok_at is not None

    def test_record_failure_applies_policy(self):
        tracker = HealthTracker([make_spec("a", 1)])

        assert tracker.record_failure("a", http_error("a", 429)) is False
        assert tracker.is_healthy("a")
        assert tracker.record_failure("a", http_error("a", 503)) is True
        assert not tracker.is_healthy("a")

    def test_details_are_copies(self):
        tracker = HealthTracker([make_spec("a", 1)])
        tracker.details()["a"].healthy = False
        assert tracker.is_healthy("a")


class TestCheckAll:
    def test_probes_health_endpoints(self):
        a, b = make_spec("a", 1, health="/ping"), make_spec("b", 2, health="/status")
        transport = FakeTransport({"a": [{"gecko_says": "(V3) To the Moon!"}], "b": [http_error("b", 503)]})
        tracker = HealthTracker([a, b])

        results = tracker.check_all([a, b], transport, timeout_s=3.0)

        assert results == {"a": True, "b": False}
        assert tracker.snapshot() == {"a": True, "b": False}
        assert transport.calls == [("a", "/ping", {}, 3.0), ("b", "/status", {}, 3.0)]

    def test_probe_failure_even_if_status_not_in_policy(self):
        a = make_spec("a", 1)
        transport = FakeTransport({"a": [http_error("a", 429)]})
        tracker = HealthTracker([a])

        assert tracker.check_all([a], transport) == {"a": False}

    def test_provider_without_health_path_reports_last_flag(self):
        c = make_spec("c", 3, health=None)
        tracker = HealthTracker([c])
        tracker.mark_unhealthy("c", "earlier failure")
        transport = FakeTransport()

        assert tracker.check_all([c], transport) == {"c": False}
        assert transport.calls == []

    def test_recovery_via_probe(self):
        a = make_spec("a", 1)
        tracker = HealthTracker([a])
        tracker.mark_unhealthy("a", "down")

        tracker.check_all([a], FakeTransport({"a": [{}]}))

        assert tracker.is_healthy("a")
