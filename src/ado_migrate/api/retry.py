"""Retry policy primitives wrapping remote calls."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Optional, Tuple, TypeVar

import requests
from loguru import logger

from ..utils.clock import Clock, SystemClock
from .exceptions import AuthenticationError, GraphQLError, MigrateAPIError, MigrationError

T = TypeVar('T')

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class BackoffStrategy(str, Enum):
    """How the delay grows between attempts."""

    CONSTANT = 'constant'
    LINEAR = 'linear'
    EXPONENTIAL = 'exponential'


class RetryDecision(str, Enum):
    """Outcome of classifying a failure."""

    RETRY = 'retry'
    FATAL = 'fatal'


class RetryOutcome(str, Enum):
    """Final outcome of a result-based retry."""

    SUCCESSFUL = 'successful'
    FAILURE = 'failure'


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 6
    initial_delay_seconds: float = 4.0
    backoff: BackoffStrategy = BackoffStrategy.LINEAR
    max_delay_seconds: float = 60.0


DEFAULT_RETRY_POLICY = RetryPolicy()
HTTP_RETRY_POLICY = RetryPolicy(initial_delay_seconds=1.0)


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    outcome: RetryOutcome
    value: Optional[T]
    attempts: int

    @property
    def succeeded(self) -> bool:
        return self.outcome is RetryOutcome.SUCCESSFUL


class RetryPolicyError(ValueError):
    """Raised when retry policy values are invalid."""


def validate_retry_policy(policy: RetryPolicy) -> RetryPolicy:
    if policy.max_attempts < 1:
        raise RetryPolicyError('max_attempts must be >= 1')
    if policy.initial_delay_seconds < 0:
        raise RetryPolicyError('initial_delay_seconds must be >= 0')
    if policy.max_delay_seconds < 0:
        raise RetryPolicyError('max_delay_seconds must be >= 0')
    return policy


def compute_backoff_delay(policy: RetryPolicy, attempt_index: int) -> float:
    """Compute the delay before retry number ``attempt_index`` (0-based)."""
    if attempt_index < 0:
        raise RetryPolicyError('attempt_index must be >= 0')

    if policy.backoff is BackoffStrategy.CONSTANT:
        delay = policy.initial_delay_seconds
    elif policy.backoff is BackoffStrategy.LINEAR:
        delay = policy.initial_delay_seconds * (attempt_index + 1)
    else:
        delay = policy.initial_delay_seconds * (2**attempt_index)

    return min(delay, policy.max_delay_seconds)


def build_retry_schedule(policy: RetryPolicy) -> Tuple[float, ...]:
    validate_retry_policy(policy)
    return tuple(
        compute_backoff_delay(policy, index) for index in range(policy.max_attempts - 1)
    )


def classify_exception(exc: BaseException) -> RetryDecision:
    """Split failures into transient ones worth retrying and fatal ones.

    Network failures, timeouts, 408/429/5xx responses and results that are
    not populated yet are transient. Authentication failures, other 4xx
    responses, GraphQL errors and migration errors are fatal.
    """
    if isinstance(exc, (MigrationError, AuthenticationError, GraphQLError)):
        return RetryDecision.FATAL

    if isinstance(exc, MigrateAPIError):
        if exc.status_code is None or exc.status_code in RETRYABLE_STATUS_CODES:
            return RetryDecision.RETRY
        return RetryDecision.FATAL

    if isinstance(exc, (requests.Timeout, requests.ConnectionError)):
        return RetryDecision.RETRY

    return RetryDecision.FATAL


def retry(
    action: Callable[[], T],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    classify: Callable[[BaseException], RetryDecision] = classify_exception,
    clock: Optional[Clock] = None,
    log=None,
) -> T:
    """Invoke ``action`` until it succeeds, fails fatally or attempts run out.

    Args:
        action: Callable performing the remote call
        policy: Retry policy
        classify: Failure classifier
        clock: Clock used for backoff waits
        log: Logger

    Returns:
        Value returned by ``action``

    Raises:
        Exception: The fatal failure, or the last retryable one
    """
    validate_retry_policy(policy)
    clock = clock or SystemClock()
    log = log or logger.bind(component='RetryPolicy')

    attempt = 0
    while True:
        attempt += 1
        try:
            return action()
        except Exception as e:
            if classify(e) is RetryDecision.FATAL:
                raise
            if attempt >= policy.max_attempts:
                log.debug(f'Giving up after {attempt} attempts: {e}')
                raise

            delay = compute_backoff_delay(policy, attempt - 1)
            log.debug(
                f'Call failed ({e}), retrying in {delay:g}s '
                f'(attempt {attempt}/{policy.max_attempts})...'
            )
            clock.sleep(delay)


def retry_on_result(
    action: Callable[[], T],
    is_acceptable: Callable[[Any], bool],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    clock: Optional[Clock] = None,
    log=None,
    retry_message: str = 'Retrying...',
) -> RetryResult[T]:
    """Invoke ``action`` until its result is acceptable or attempts run out.

    Used for eventually consistent reads. ``action`` is called at most
    ``policy.max_attempts`` times; the caller decides what to do with a
    failed outcome.

    Args:
        action: Callable performing the read
        is_acceptable: Predicate over the returned value
        policy: Retry policy
        clock: Clock used for backoff waits
        log: Logger
        retry_message: Message logged before each retry

    Returns:
        Retry result carrying the outcome, last value and attempt count
    """
    validate_retry_policy(policy)
    clock = clock or SystemClock()
    log = log or logger.bind(component='RetryPolicy')

    value = None
    for attempt in range(1, policy.max_attempts + 1):
        value = action()
        if is_acceptable(value):
            return RetryResult(RetryOutcome.SUCCESSFUL, value, attempt)

        if attempt < policy.max_attempts:
            log.debug(retry_message)
            clock.sleep(compute_backoff_delay(policy, attempt - 1))

    return RetryResult(RetryOutcome.FAILURE, value, policy.max_attempts)
