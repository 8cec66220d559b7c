import json

import httpx

from formatter_core.domain.exceptions import ErrorCode, NetworkError, NetworkTimeoutError, ValidationError
from formatter_core.domain.result import Err, Ok
from formatter_core.infrastructure.logging.logger import error_log_path
from formatter_core.infrastructure.retry import RetryOptions, with_retry


class Flaky:
    """前 failures 次调用抛出 make_error()，之后返回 value。"""

    def __init__(self, failures, make_error, value="ok"):
        self.failures = failures
        self.make_error = make_error
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.make_error()
        return self.value


def test_success_on_first_attempt(tmp_path):
    sleeps = []
    result = with_retry(lambda: 42, sleep=sleeps.append, log_dir=tmp_path)
    assert isinstance(result, Ok)
    assert result.value == 42
    assert sleeps == []


def test_non_retryable_error_makes_exactly_one_attempt(tmp_path):
    sleeps = []
    op = Flaky(100, lambda: ValidationError("bad input"))
    result = with_retry(op, sleep=sleeps.append, log_dir=tmp_path)
    assert isinstance(result, Err)
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert op.calls == 1
    assert sleeps == []


def test_native_error_is_classified_and_not_retried(tmp_path):
    op = Flaky(100, lambda: ValueError("broken"))
    result = with_retry(op, sleep=lambda s: None, log_dir=tmp_path)
    assert result.error.code == ErrorCode.UNKNOWN
    assert result.error.message == "broken"
    assert op.calls == 1


def test_permanent_network_failure_backoff_sequence(tmp_path):
    sleeps = []
    op = Flaky(100, lambda: NetworkError("connection refused"))
    opts = RetryOptions(max_retries=3, initial_delay_ms=1000, max_delay_ms=10000, backoff_multiplier=2)
    result = with_retry(op, opts, sleep=sleeps.append, log_dir=tmp_path)
    assert isinstance(result, Err)
    assert op.calls == 4
    assert sleeps == [1.0, 2.0, 4.0]
    assert result.error.code == ErrorCode.NETWORK_ERROR
    assert result.error.details["retryCount"] == 3
    assert result.error.details["maxRetries"] == 3


def test_exhausted_timeout_reports_network_error(tmp_path):
    op = Flaky(100, lambda: NetworkTimeoutError())
    result = with_retry(op, RetryOptions(max_retries=1), sleep=lambda s: None, log_dir=tmp_path)
    assert result.error.code == ErrorCode.NETWORK_ERROR
    assert result.error.details["lastError"]["code"] == "network-timeout"
    assert op.calls == 2


def test_recovers_after_transient_failures_and_logs_each_failure(tmp_path):
    sleeps = []
    request = httpx.Request("POST", "http://localhost:11434/api/generate")
    op = Flaky(2, lambda: httpx.ConnectError("refused", request=request), value="done")
    result = with_retry(op, sleep=sleeps.append, log_dir=tmp_path)
    assert isinstance(result, Ok)
    assert result.value == "done"
    assert sleeps == [1.0, 2.0]
    lines = error_log_path(tmp_path).read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["code"] for line in lines] == ["network-error", "network-error"]


def test_delay_is_capped_by_max_delay(tmp_path):
    sleeps = []
    op = Flaky(100, lambda: NetworkError())
    opts = RetryOptions(max_retries=5, initial_delay_ms=1000, max_delay_ms=3000)
    with_retry(op, opts, sleep=sleeps.append, log_dir=tmp_path)
    assert sleeps == [1.0, 2.0, 3.0, 3.0, 3.0]


def test_operation_may_return_err_instead_of_raising(tmp_path):
    calls = []

    def op():
        calls.append(1)
        return Err(NetworkError())

    result = with_retry(op, RetryOptions(max_retries=2), sleep=lambda s: None, log_dir=tmp_path)
    assert result.error.code == ErrorCode.NETWORK_ERROR
    assert len(calls) == 3


def test_shutdown_during_sleep_stops_retrying(tmp_path):
    op = Flaky(100, lambda: NetworkError())
    result = with_retry(op, sleep=lambda s: True, log_dir=tmp_path)
    assert result.error.code == ErrorCode.UNKNOWN
    assert op.calls == 1


def test_delay_ms():
    opts = RetryOptions()
    assert [opts.delay_ms(i) for i in range(6)] == [1000, 2000, 4000, 8000, 10000, 10000]
