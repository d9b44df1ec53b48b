"""Tests for the cooperative deadline guard.

These tests are marked as 'slow' and can be skipped with: pytest -m "not slow"
"""

import time

import pytest

from aljabar_pkg.api import evaluate
from aljabar_pkg.deadline import DeadlineGuard, check_deadline, entry_point, with_deadline
from aljabar_pkg.parser import parse
from aljabar_pkg.session import get_session
from aljabar_pkg.types import Timeout


class TestDeadlineGuard:
    """Test arming and disarming."""

    def test_disarmed_by_default(self):
        guard = DeadlineGuard()
        assert not guard.armed_now
        assert guard.remaining() is None
        guard.check()

    def test_armed_inside_block_only(self):
        guard = DeadlineGuard()
        with guard.armed(1000):
            assert guard.armed_now
            assert 0 < guard.remaining() <= 1.0
        assert not guard.armed_now

    def test_zero_budget_means_unlimited(self):
        guard = DeadlineGuard()
        with guard.armed(0):
            assert not guard.armed_now

    def test_nested_call_shares_outer_budget(self):
        guard = DeadlineGuard()
        with guard.armed(1000):
            outer = guard.remaining()
            with guard.armed(60000):
                assert guard.remaining() <= outer
            assert guard.armed_now

    def test_expired_guard_raises(self):
        guard = DeadlineGuard()
        with guard.armed(1):
            time.sleep(0.01)
            with pytest.raises(Timeout):
                guard.check()

    def test_decorator_uses_session_budget(self):
        seen = []

        @with_deadline
        def guarded():
            seen.append(get_session().deadline.armed_now)
            check_deadline()

        guarded()
        assert seen == [True]
        assert not get_session().deadline.armed_now

    def test_entry_point_pins_immutable_operands(self):
        session = get_session()
        seen = []

        @entry_point
        def guarded():
            seen.append((session.deadline.armed_now, session.settings.immutable))

        with session.overrides(immutable=False):
            guarded()
            assert session.settings.immutable is False
        assert seen == [(True, True)]


@pytest.mark.slow
class TestTimeouts:
    """Test that long computations unwind with Timeout."""

    def test_long_sum_times_out(self):
        session = get_session()
        before = session.settings.copy()
        with session.overrides(timeout_ms=50):
            start = time.monotonic()
            with pytest.raises(Timeout):
                parse("sum(x, x, 0, 10^8)")
            assert time.monotonic() - start < 5
        assert session.settings == before
        assert not session.deadline.armed_now

    def test_timeout_through_api(self):
        session = get_session()
        session.set_setting("timeout_ms", 50)
        result = evaluate("sum(x, x, 0, 10^8)")
        assert result.ok is False
        assert result.error_code == "TIMEOUT"
        assert not session.deadline.armed_now

    def test_engine_usable_after_timeout(self):
        session = get_session()
        with session.overrides(timeout_ms=50):
            with pytest.raises(Timeout):
                parse("sum(x, x, 0, 10^8)")
        assert str(parse("2*x+3*x")) == "5*x"

    def test_expand_times_out(self):
        session = get_session()
        with session.overrides(timeout_ms=20):
            with pytest.raises(Timeout):
                parse("expand((a+b+c+d+f)^8)")
        assert not session.deadline.armed_now
