"""Rate limit detection and backoff for API calls."""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from loguru import logger

from ..utils.clock import Clock, SystemClock

SECONDARY_RATE_LIMIT_MAX_RETRIES = 3
SECONDARY_RATE_LIMIT_DEFAULT_DELAY = 60

_PRIMARY_MARKER = 'API RATE LIMIT EXCEEDED'
_SECONDARY_MARKERS = (
    'SECONDARY RATE LIMIT',
    'ABUSE DETECTION',
    'YOU HAVE TRIGGERED AN ABUSE DETECTION MECHANISM',
)


class RateLimitKind(str, Enum):
    """Kind of rate limit response."""

    PRIMARY = 'primary'
    SECONDARY = 'secondary'


@dataclass(frozen=True)
class RateLimitSignal:
    kind: RateLimitKind
    wait_seconds: int
    status_code: int


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name.lower():
            return value
    return None


def _int_header(headers: Mapping[str, str], name: str) -> Optional[int]:
    value = _header(headers, name)
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


class RateLimitHandler:
    """Detects rate limit responses and waits out the server-declared delay.

    The transport consults :meth:`detect` after every response. When a
    signal is returned it calls :meth:`wait` and re-issues the request, at
    most ``max_retries`` times.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        max_retries: int = SECONDARY_RATE_LIMIT_MAX_RETRIES,
        default_delay: int = SECONDARY_RATE_LIMIT_DEFAULT_DELAY,
        log=None,
    ):
        """Initialize rate limit handler.

        Args:
            clock: Clock used for waiting
            max_retries: Maximum number of re-issues per request
            default_delay: Base delay in seconds when the server declares none
            log: Logger
        """
        self.clock = clock or SystemClock()
        self.max_retries = max_retries
        self.default_delay = default_delay
        self.log = log or logger.bind(component='RateLimitHandler')

    def detect(
        self,
        status_code: int,
        body: str,
        headers: Mapping[str, str],
        retry_count: int = 0,
    ) -> Optional[RateLimitSignal]:
        """Classify a response as a rate limit signal.

        Args:
            status_code: HTTP status code
            body: Response body text
            headers: Response headers
            retry_count: Number of re-issues already made for this request

        Returns:
            Signal with the wait duration, or ``None`` for any other response
        """
        if status_code not in (403, 429):
            return None

        content = (body or '').upper()

        if _PRIMARY_MARKER in content:
            remaining = _int_header(headers, 'X-RateLimit-Remaining')
            if remaining is not None and remaining <= 0:
                wait = self._seconds_until_reset(headers)
                if wait > 0:
                    return RateLimitSignal(RateLimitKind.PRIMARY, wait, status_code)
            return None

        if status_code == 429 or any(marker in content for marker in _SECONDARY_MARKERS):
            return RateLimitSignal(
                RateLimitKind.SECONDARY,
                self.secondary_delay(headers, retry_count),
                status_code,
            )

        return None

    def secondary_delay(self, headers: Mapping[str, str], retry_count: int) -> int:
        """Delay before re-issuing a request hit by a secondary rate limit.

        ``Retry-After`` wins, then the reset time when no requests remain,
        then exponential backoff from ``default_delay`` (60s, 120s, 240s).
        """
        retry_after = _int_header(headers, 'Retry-After')
        if retry_after is not None:
            return retry_after

        remaining = _int_header(headers, 'X-RateLimit-Remaining')
        if remaining is not None and remaining <= 0:
            wait = self._seconds_until_reset(headers)
            if wait > 0:
                return wait

        return self.default_delay * (2**retry_count)

    def wait(self, signal: RateLimitSignal, retry_count: int) -> None:
        """Sleep for the duration carried by the signal."""
        if signal.kind is RateLimitKind.SECONDARY:
            self.log.warning(
                f'Secondary rate limit detected (attempt {retry_count + 1}/'
                f'{self.max_retries}). Waiting {signal.wait_seconds} seconds '
                f'before retrying...'
            )
        else:
            self.log.warning(
                f'GitHub rate limit exceeded. Waiting {signal.wait_seconds} '
                f'seconds before continuing'
            )
        self.clock.sleep(signal.wait_seconds)

    def _seconds_until_reset(self, headers: Mapping[str, str]) -> int:
        reset = _int_header(headers, 'X-RateLimit-Reset')
        if reset is None:
            return 0
        return int(reset - self.clock.now())
