"""Snowfall alert matching.

A subscription names a resort, a threshold band and a look-ahead window of
5 or 10 days. A check finds the highest stored forecast for the resort in
``[today, today + timeframe]`` that reaches the band minimum and records an
in-app notification for it, at most once per forecast date per 24 hours.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from snowpeak.cache.database import CacheDatabase
from snowpeak.cache.freshness import utcnow
from snowpeak.cache.models import AlertNotification, AlertSubscription
from snowpeak.alerts.email import EmailNotifier
from snowpeak.utils.regions import name_from_slug

logger = logging.getLogger(__name__)

# Window in which a repeat notification for the same forecast date is suppressed
DUPLICATE_WINDOW = timedelta(hours=24)

VALID_TIMEFRAMES = (5, 10)


@dataclass(frozen=True)
class ThresholdBand:
    """Named snowfall range in inches (inclusive)."""

    name: str
    min_inches: float
    max_inches: float
    label: str


THRESHOLDS = {
    "light": ThresholdBand("light", 1, 5, 'Light Snow (1-5")'),
    "good": ThresholdBand("good", 5, 15, 'Good Snow (5-15")'),
    "great": ThresholdBand("great", 15, 30, 'Great Snow (15-30")'),
}


@dataclass
class CheckSummary:
    """Result of a batch alert check."""

    checked: int = 0
    triggered: int = 0


def normalize_timeframe(timeframe: Optional[int]) -> int:
    """Clamp a requested timeframe to 5 or 10 days."""
    return 10 if timeframe == 10 else 5


def snow_label(inches: float) -> str:
    """Severity label used in notification titles."""
    if inches >= 15:
        return "Great"
    if inches >= 5:
        return "Good"
    return "Light"


def format_forecast_date(value: date) -> str:
    """Short display date ('Thu, Jan 15')."""
    return f"{value:%a, %b} {value.day}"


def _format_inches(value: float) -> str:
    return f"{value:g}"


class AlertEngine:
    """Subscription management and forecast matching.

    Example:
        >>> engine = AlertEngine(CacheDatabase())
        >>> sub, triggered = engine.subscribe("visitor-1", "vail", "good")
        >>> engine.check_subscription(sub.id)
        False
    """

    def __init__(
        self,
        db: CacheDatabase,
        notifier: Optional[EmailNotifier] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize engine.

        Args:
            db: Resort store
            notifier: Email sender (defaults to a disabled notifier)
            clock: Current-time provider (aware UTC)
        """
        self.db = db
        self.notifier = notifier or EmailNotifier()
        self._clock = clock

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(
        self,
        visitor_id: str,
        resort_id: str,
        threshold: str,
        timeframe: int = 5,
        email: Optional[str] = None,
        resort_name: Optional[str] = None,
    ) -> tuple[AlertSubscription, bool]:
        """Create or update a subscription and check it immediately.

        Re-subscribing to the same resort updates the existing subscription
        and reactivates it.

        Returns:
            Tuple of (subscription, whether the immediate check triggered)

        Raises:
            ValueError: If the threshold is unknown or ids are empty
        """
        if threshold not in THRESHOLDS:
            raise ValueError(f"Unknown threshold {threshold!r}. Expected one of {list(THRESHOLDS)}")
        if not visitor_id or not resort_id:
            raise ValueError("visitor_id and resort_id are required")

        resort = self.db.get_resort(resort_id)
        if resort is not None:
            resort_name = resort.name
        resort_name = resort_name or name_from_slug(resort_id)

        subscription = self.db.upsert_subscription(
            visitor_id=visitor_id,
            resort_id=resort_id,
            resort_name=resort_name,
            threshold=threshold,
            timeframe=normalize_timeframe(timeframe),
            email=email or None,
        )
        logger.info(
            f"Subscription {subscription.id}: {visitor_id} -> {resort_name} "
            f"({threshold}, {subscription.timeframe}d)"
        )

        triggered = self.check_subscription(subscription.id)
        return self.db.get_subscription(subscription.id), triggered

    def unsubscribe(self, visitor_id: str, subscription_id: int) -> bool:
        """Deactivate a subscription owned by the visitor.

        Returns:
            False if the subscription doesn't exist or belongs to someone else
        """
        subscription = self.db.get_subscription(subscription_id)
        if subscription is None or subscription.visitor_id != visitor_id:
            return False

        self.db.set_subscription_active(subscription_id, False)
        logger.info(f"Subscription {subscription_id} deactivated")
        return True

    def list_subscriptions(
        self,
        visitor_id: str,
    ) -> list[tuple[AlertSubscription, list[AlertNotification]]]:
        """A visitor's active subscriptions with their unread notifications."""
        return [
            (
                subscription,
                [
                    notification
                    for notification, _ in self.db.list_notifications(
                        subscription_id=subscription.id,
                        include_read=False,
                    )
                ],
            )
            for subscription in self.db.list_subscriptions(visitor_id=visitor_id)
        ]

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def list_notifications(
        self,
        visitor_id: str,
        include_read: bool = False,
        limit: int = 20,
    ) -> list[tuple[AlertNotification, AlertSubscription]]:
        return self.db.list_notifications(
            visitor_id=visitor_id,
            include_read=include_read,
            limit=limit,
        )

    def mark_read(self, notification_id: int) -> bool:
        return self.db.mark_notification_read(notification_id)

    def mark_all_read(self, visitor_id: str) -> int:
        return self.db.mark_all_notifications_read(visitor_id)

    # -------------------------------------------------------------------------
    # Matching
    # -------------------------------------------------------------------------

    def check_subscription(self, subscription_id: int, now: Optional[datetime] = None) -> bool:
        """Check one subscription against stored forecasts.

        Args:
            subscription_id: Subscription to check
            now: Evaluation time (aware UTC), defaults to the engine clock

        Returns:
            True if a new notification was created
        """
        now = now or self._clock()
        subscription = self.db.get_subscription(subscription_id)
        if subscription is None or not subscription.is_active:
            return False

        band = THRESHOLDS.get(subscription.threshold)
        if band is None:
            logger.warning(
                f"Subscription {subscription_id} has unknown threshold {subscription.threshold!r}"
            )
            return False

        today = now.astimezone(timezone.utc).date()
        window_end = today + timedelta(days=normalize_timeframe(subscription.timeframe))

        forecast = self.db.find_best_forecast(
            subscription.resort_id, today, window_end, band.min_inches
        )
        if forecast is None:
            self.db.touch_subscription(subscription_id, checked_at=now)
            return False

        title = f"{snow_label(forecast.predicted_snow)} Snow Alert: {subscription.resort_name}"
        message = (
            f'{_format_inches(forecast.predicted_snow)}" of snow predicted for '
            f"{format_forecast_date(forecast.forecast_date)}!"
        )

        notification_id = self.db.insert_notification_if_absent(
            subscription_id=subscription.id,
            title=title,
            message=message,
            predicted_snow=forecast.predicted_snow,
            forecast_date=forecast.forecast_date,
            since=now - DUPLICATE_WINDOW,
            created_at=now,
        )
        if notification_id is None:
            logger.debug(
                f"Subscription {subscription_id} already notified for {forecast.forecast_date}"
            )
            self.db.touch_subscription(subscription_id, checked_at=now)
            return False

        self.db.touch_subscription(subscription.id, checked_at=now, triggered_at=now)
        logger.info(f"Notification {notification_id}: {title}")

        if subscription.email:
            self.notifier.send_alert(
                to_email=subscription.email,
                resort_name=subscription.resort_name,
                title=title,
                message=message,
                forecast_date=forecast.forecast_date,
            )
        return True

    def check_all(self, now: Optional[datetime] = None) -> CheckSummary:
        """Check every active subscription."""
        summary = CheckSummary()
        for subscription in self.db.list_subscriptions(active_only=True):
            summary.checked += 1
            if self.check_subscription(subscription.id, now=now):
                summary.triggered += 1

        logger.info(f"Checked {summary.checked} subscriptions, {summary.triggered} triggered")
        return summary

    def check_resort(self, resort_id: str, now: Optional[datetime] = None) -> int:
        """Check the active subscriptions of one resort (after its forecasts change).

        Returns:
            Number of notifications created
        """
        triggered = 0
        for subscription in self.db.list_subscriptions(resort_id=resort_id, active_only=True):
            if self.check_subscription(subscription.id, now=now):
                triggered += 1
        if triggered:
            logger.info(f"{triggered} alerts triggered for {resort_id}")
        return triggered
