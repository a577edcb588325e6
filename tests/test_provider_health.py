from deepticker.errors import ProviderErrorKind


def test_rate_limit_disables_until_cooldown(health, clock):
    pid = "alpha_vantage"

    assert health.is_enabled(pid) is True
    health.record_failure(pid, ProviderErrorKind.RATE_LIMITED)
    assert health.is_enabled(pid) is False
    assert health.check_and_maybe_reenable(pid) is False

    clock.advance(599)
    assert health.check_and_maybe_reenable(pid) is False

    clock.advance(1)
    assert health.check_and_maybe_reenable(pid) is True
    assert health.is_enabled(pid) is True
    assert health.snapshot()[pid]["disabled_until"] is None


def test_auth_error_disables_provider(health):
    health.record_failure("rapidapi", ProviderErrorKind.AUTH_ERROR)
    assert health.is_enabled("rapidapi") is False


def test_per_call_faults_only_update_counters(health):
    for kind in (ProviderErrorKind.TIMEOUT, ProviderErrorKind.NOT_FOUND, ProviderErrorKind.MALFORMED_RESPONSE):
        health.record_failure("yahoo", kind)

    state = health.snapshot()["yahoo"]
    assert state["enabled"] is True
    assert state["failure_count"] == 3
    assert state["last_failure_kind"] == "malformed_response"


def test_explicit_now_overrides_clock(health, clock):
    health.record_failure("yahoo", ProviderErrorKind.RATE_LIMITED)
    assert health.check_and_maybe_reenable("yahoo", now=clock.now + 600) is True


def test_success_is_counted(health):
    health.record_success("yahoo")
    health.record_success("yahoo")
    assert health.snapshot()["yahoo"]["success_count"] == 2
