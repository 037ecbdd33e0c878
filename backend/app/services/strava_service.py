"""
Strava API integration service.

Handles token refresh, activity paging and the per-activity detail,
zones and streams reads, all behind one rate-limit aware retry loop.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

# Never give up sooner than this; Strava's 15-minute window can need several waits
MIN_ATTEMPTS = 15

# Safety margins added on top of a computed window reset
DAILY_RESET_MARGIN_SECONDS = 5.0
SHORT_RESET_MARGIN_SECONDS = 2.0

SHORT_WINDOW_SECONDS = 15 * 60

TREND_STREAM_KEYS = "time,distance,heartrate,velocity_smooth"


class StravaAPIError(Exception):
    """Exception raised when Strava API returns an error."""

    def __init__(self, message: str, status_code: int = None, response_body: Any = None):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(self.message)


class StravaRateLimitError(StravaAPIError):
    """Exception raised when Strava keeps answering 429 after every retry."""

    def __init__(self, attempts: int, retry_after: Optional[float] = None):
        self.attempts = attempts
        self.retry_after = retry_after
        super().__init__(
            f"Strava API failed after {attempts} attempts: HTTP 429 rate limit exceeded",
            status_code=429,
        )


# ============== Rate limit header helpers ==============

@dataclass(frozen=True)
class RateWindow:
    """A ``short,long`` pair from X-RateLimit-Limit / X-RateLimit-Usage."""
    short: int
    long: int


def parse_rate_header(value: Optional[str]) -> Optional[RateWindow]:
    if not value:
        return None
    parts = [part.strip() for part in value.split(",")]
    if len(parts) < 2:
        return None
    try:
        return RateWindow(short=int(parts[0]), long=int(parts[1]))
    except ValueError:
        return None


def parse_retry_after(value: Optional[str], now: datetime) -> Optional[float]:
    """Retry-After as seconds; accepts delta-seconds or an HTTP date."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        seconds = None
    if seconds is not None:
        return seconds if seconds > 0 else None

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - now).total_seconds())


def seconds_until_next_quarter_hour(now: datetime) -> float:
    elapsed = now.timestamp() % SHORT_WINDOW_SECONDS
    return SHORT_WINDOW_SECONDS - elapsed


def seconds_until_next_utc_day(now: datetime) -> float:
    now_utc = now.astimezone(timezone.utc)
    next_midnight = (now_utc + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return max(0.0, (next_midnight - now_utc).total_seconds())


def compute_rate_limit_wait(
    limit: Optional[RateWindow],
    usage: Optional[RateWindow],
    now: datetime,
) -> float:
    """
    Seconds to wait for the exhausted rate window to reset.

    The daily window takes precedence over the 15-minute one; zero when
    neither is exhausted or the headers are missing.
    """
    if not limit or not usage:
        return 0.0
    if usage.long >= limit.long:
        return seconds_until_next_utc_day(now) + DAILY_RESET_MARGIN_SECONDS
    if usage.short >= limit.short:
        return seconds_until_next_quarter_hour(now) + SHORT_RESET_MARGIN_SECONDS
    return 0.0


def _rate_headers(response: httpx.Response) -> Tuple[Optional[RateWindow], Optional[RateWindow]]:
    limit = parse_rate_header(response.headers.get("x-ratelimit-limit")) or parse_rate_header(
        response.headers.get("x-readratelimit-limit")
    )
    usage = parse_rate_header(response.headers.get("x-ratelimit-usage")) or parse_rate_header(
        response.headers.get("x-readratelimit-usage")
    )
    return limit, usage


def format_wait(seconds: float) -> str:
    total = int(-(-seconds // 1))
    if total < 60:
        return f"{total}s"
    return f"{total // 60}m {total % 60}s"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StravaService:
    """
    Service for reading a single athlete's activities from the Strava API.

    Attributes:
        access_token: Bearer token sent with every API read
        api_base_url: Strava API base URL
        token_url: Strava token exchange URL
        max_attempts: Total attempts per request before giving up
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        *,
        api_base_url: Optional[str] = None,
        token_url: Optional[str] = None,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_cap: Optional[float] = None,
        low_quota_threshold: Optional[int] = None,
        low_quota_pause: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the Strava service, falling back to settings for anything omitted."""
        self.access_token = access_token if access_token is not None else settings.STRAVA_ACCESS_TOKEN
        self.api_base_url = api_base_url or settings.STRAVA_API_BASE_URL
        self.token_url = token_url or settings.STRAVA_TOKEN_URL
        self.max_attempts = max(max_attempts or settings.STRAVA_MAX_ATTEMPTS, MIN_ATTEMPTS)
        self.backoff_base = backoff_base if backoff_base is not None else settings.STRAVA_BACKOFF_BASE_SECONDS
        self.backoff_cap = backoff_cap if backoff_cap is not None else settings.STRAVA_BACKOFF_CAP_SECONDS
        self.low_quota_threshold = (
            low_quota_threshold if low_quota_threshold is not None else settings.STRAVA_LOW_QUOTA_THRESHOLD
        )
        self.low_quota_pause = (
            low_quota_pause if low_quota_pause is not None else settings.STRAVA_LOW_QUOTA_PAUSE_SECONDS
        )
        self.timeout = timeout or settings.STRAVA_REQUEST_TIMEOUT_SECONDS
        self._transport = transport
        self._sleep = sleep
        self._clock = clock

    def _backoff(self, attempt: int) -> float:
        return min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_cap)

    def _retry_wait(self, response: httpx.Response, attempt: int) -> float:
        now = self._clock()
        retry_after = parse_retry_after(response.headers.get("retry-after"), now) or 0.0
        limit, usage = _rate_headers(response)
        window_wait = compute_rate_limit_wait(limit, usage, now)
        return max(retry_after, window_wait, self._backoff(attempt))

    async def _make_request(
        self,
        method: str,
        url: str,
        params: dict = None,
        data: dict = None,
        authenticated: bool = True,
    ) -> Any:
        """
        Make an HTTP request with retry logic and rate limit handling.

        429 and 5xx responses, timeouts and connection errors are retried up
        to ``max_attempts`` times. The wait before each retry is the largest
        of Retry-After, the time until the exhausted rate window resets, and
        capped exponential backoff.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Full URL to request
            params: Optional query parameters
            data: Optional form body
            authenticated: Send the bearer token

        Returns:
            Parsed JSON response

        Raises:
            StravaRateLimitError: If every attempt was rate limited
            StravaAPIError: If the API returns a non-retryable error or retries run out
        """
        headers = {"Authorization": f"Bearer {self.access_token}"} if authenticated else None

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(1, self.max_attempts + 1):
                is_last = attempt >= self.max_attempts
                try:
                    response = await client.request(
                        method=method,
                        url=url,
                        headers=headers,
                        params=params,
                        data=data,
                    )
                except httpx.TimeoutException:
                    logger.warning(f"Strava API timeout. Attempt {attempt}/{self.max_attempts}")
                    if is_last:
                        raise StravaAPIError(
                            f"Strava API failed after {attempt} attempts: request timed out",
                            status_code=408,
                        )
                    await self._sleep(self._backoff(attempt))
                    continue
                except httpx.RequestError as e:
                    logger.warning(f"Strava API request error: {str(e)}. Attempt {attempt}/{self.max_attempts}")
                    if is_last:
                        raise StravaAPIError(f"Strava API failed after {attempt} attempts: {str(e)}")
                    await self._sleep(self._backoff(attempt))
                    continue

                if response.status_code == 429 or response.status_code >= 500:
                    if is_last:
                        if response.status_code == 429:
                            raise StravaRateLimitError(
                                attempts=attempt,
                                retry_after=parse_retry_after(response.headers.get("retry-after"), self._clock()),
                            )
                        raise StravaAPIError(
                            f"Strava API failed after {attempt} attempts: "
                            f"HTTP {response.status_code} {response.reason_phrase}",
                            status_code=response.status_code,
                        )

                    wait = self._retry_wait(response, attempt)
                    logger.warning(
                        f"Strava API returned {response.status_code}. Waiting {format_wait(wait)} "
                        f"before retry #{attempt + 1}/{self.max_attempts}"
                    )
                    await self._sleep(wait)
                    continue

                if response.status_code >= 400:
                    try:
                        error_body = response.json()
                    except ValueError:
                        error_body = {"raw": response.text}

                    error_message = (
                        error_body.get("message") if isinstance(error_body, dict) else None
                    ) or f"HTTP {response.status_code}"
                    logger.error(f"Strava API error: {response.status_code} - {error_message}")
                    raise StravaAPIError(
                        message=f"Strava API request failed: HTTP {response.status_code} {error_message}",
                        status_code=response.status_code,
                        response_body=error_body,
                    )

                limit, usage = _rate_headers(response)
                if limit and usage and limit.short - usage.short <= self.low_quota_threshold:
                    logger.debug(
                        f"Strava short-window quota nearly spent ({usage.short}/{limit.short}); "
                        f"pausing {self.low_quota_pause}s"
                    )
                    await self._sleep(self.low_quota_pause)

                return response.json()

        # Unreachable: the loop either returns or raises on its last attempt
        raise StravaAPIError("Strava API request was never attempted")

    async def refresh_tokens(
        self,
        refresh_token: str,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ) -> dict:
        """
        Refresh an expired access token using a refresh token.

        Strava access tokens expire after 6 hours. On success the new access
        token is used for every later request made by this service.

        Returns:
            dict: Token response with access_token, refresh_token and expires_at

        Raises:
            StravaAPIError: If token refresh fails
        """
        logger.info("Refreshing Strava access token")

        data = {
            "client_id": client_id or settings.STRAVA_CLIENT_ID,
            "client_secret": client_secret or settings.STRAVA_CLIENT_SECRET,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        response = await self._make_request(
            method="POST",
            url=self.token_url,
            data=data,
            authenticated=False,
        )

        self.access_token = response["access_token"]
        logger.info("Token refresh successful")
        return response

    async def get_activities(
        self,
        page: int = 1,
        per_page: int = 100,
        after: Optional[int] = None,
    ) -> list:
        """
        Fetch one page of activity summaries for the authenticated athlete.

        Args:
            page: Page number for pagination (1-indexed)
            per_page: Number of activities per page (max 200)
            after: Only return activities after this Unix timestamp

        Returns:
            list: Activity summaries; empty once paging is exhausted
        """
        logger.debug(f"Fetching activities (page={page}, per_page={per_page}, after={after})")

        params = {
            "page": page,
            "per_page": min(per_page, 200),  # Strava max is 200
        }
        if after:
            params["after"] = after

        response = await self._make_request(
            method="GET",
            url=f"{self.api_base_url}/athlete/activities",
            params=params,
        )

        logger.debug(f"Fetched {len(response)} activities")
        return response

    async def get_activity(self, activity_id: int) -> dict:
        """Get detailed information (including splits_metric) about one activity."""
        logger.debug(f"Fetching activity {activity_id}")
        return await self._make_request(
            method="GET",
            url=f"{self.api_base_url}/activities/{activity_id}",
        )

    async def get_activity_zones(self, activity_id: int) -> list:
        """Get heart rate / power zone distributions for an activity."""
        logger.debug(f"Fetching zones for activity {activity_id}")
        return await self._make_request(
            method="GET",
            url=f"{self.api_base_url}/activities/{activity_id}/zones",
        )

    async def get_activity_streams(self, activity_id: int) -> Any:
        """
        Get the time series used for trend charts.

        The response is returned as sent (dict keyed by type, or a list of
        typed streams); strava_normalizer accepts both shapes.
        """
        logger.debug(f"Fetching streams for activity {activity_id}")
        return await self._make_request(
            method="GET",
            url=f"{self.api_base_url}/activities/{activity_id}/streams",
            params={"keys": TREND_STREAM_KEYS, "key_by_type": "true"},
        )


# ============== Paging ==============

def is_run_activity(activity: dict, target_type: Optional[str] = None) -> bool:
    """True when either the current ``sport_type`` or the legacy ``type`` matches."""
    target = target_type or settings.STRAVA_TARGET_ACTIVITY_TYPE
    return activity.get("sport_type") == target or activity.get("type") == target


@dataclass
class FetchRunSummariesResult:
    runs: List[dict] = field(default_factory=list)
    skipped_non_run: int = 0
    pages_fetched: int = 0


async def fetch_run_summaries(
    client: StravaService,
    after: Optional[int] = None,
    per_page: Optional[int] = None,
    target_type: Optional[str] = None,
) -> FetchRunSummariesResult:
    """
    Page through the activity list until an empty page, keeping in-scope runs.

    Args:
        client: Anything exposing ``get_activities(page, per_page, after)``
        after: Optional lower bound as a Unix timestamp
        per_page: Page size (defaults to STRAVA_PAGE_SIZE)
        target_type: Sport type to keep (defaults to STRAVA_TARGET_ACTIVITY_TYPE)
    """
    per_page = per_page or settings.STRAVA_PAGE_SIZE
    result = FetchRunSummariesResult()
    page = 1

    while True:
        activities = await client.get_activities(page=page, per_page=per_page, after=after)
        result.pages_fetched += 1
        if not activities:
            break

        for activity in activities:
            if is_run_activity(activity, target_type):
                result.runs.append(activity)
            else:
                result.skipped_non_run += 1
        page += 1

    logger.info(
        f"Fetched {len(result.runs)} runs across {result.pages_fetched} pages "
        f"({result.skipped_non_run} other activities skipped)"
    )
    return result
