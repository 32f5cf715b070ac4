#!/usr/bin/env python3
"""Tests for persistence retry with backoff"""

import os
import sys
sys.path.append('.')

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from sqlalchemy.exc import IntegrityError, OperationalError

from rentalhub.utils.retry import RetryPolicy, call_with_retry, is_transient_db_error


def _operational_error():
    return OperationalError("SELECT 1", {}, Exception("server has gone away"))


def test_backoff_doubles_and_caps():
    """Test the delay schedule"""
    policy = RetryPolicy(attempts=5, backoff_seconds=1.0, max_backoff_seconds=3.0)
    assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 3.0]
    print("[PASS] backoff schedule test passed")


def test_transient_error_is_retried():
    """Test that OperationalError is retried until the call succeeds"""
    calls = {"count": 0}
    sleeps = []

    def flaky():
        calls["count"] += 1
        if calls["count"] < 3:
            raise _operational_error()
        return "saved"

    result = call_with_retry(flaky, policy=RetryPolicy(attempts=3), sleep=sleeps.append)

    assert result == "saved"
    assert calls["count"] == 3
    assert sleeps == [1.0, 2.0]
    print("[PASS] transient error retry test passed")


def test_attempts_exhausted_reraises():
    """Test that the last error propagates after the final attempt"""
    sleeps = []
    retried = []

    def always_down():
        raise _operational_error()

    try:
        call_with_retry(
            always_down,
            policy=RetryPolicy(attempts=3, backoff_seconds=0.5),
            on_retry=retried.append,
            sleep=sleeps.append,
        )
        assert False, "Should have raised OperationalError"
    except OperationalError:
        pass

    assert sleeps == [0.5, 1.0]
    assert len(retried) == 2
    print("[PASS] exhausted attempts test passed")


def test_non_transient_errors_are_not_retried():
    """Test that constraint violations and plain exceptions fail fast"""
    sleeps = []

    def duplicate():
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    try:
        call_with_retry(duplicate, policy=RetryPolicy(attempts=3), sleep=sleeps.append)
        assert False, "Should have raised IntegrityError"
    except IntegrityError:
        pass

    try:
        call_with_retry(lambda: 1 / 0, policy=RetryPolicy(attempts=3), sleep=sleeps.append)
        assert False, "Should have raised ZeroDivisionError"
    except ZeroDivisionError:
        pass

    assert sleeps == []
    assert is_transient_db_error(_operational_error())
    assert not is_transient_db_error(ValueError("nope"))
    print("[PASS] non-transient error test passed")


if __name__ == "__main__":
    print("Running retry tests...")
    print()

    test_backoff_doubles_and_caps()
    test_transient_error_is_retried()
    test_attempts_exhausted_reraises()
    test_non_transient_errors_are_not_retried()

    print()
    print("[SUCCESS] All retry tests passed!")
