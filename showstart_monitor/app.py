"""
Main application module for the ShowStart monitor.
"""
import asyncio
import logging
import signal
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from .client import ActivityQueryClient, ActivitySource
from .exceptions import NotificationError
from .matching import is_candidate, normalize
from .models import Activity, AppConfig
from .notifications import Notifier, create_notifier
from .state import DeduplicationStore

logger = logging.getLogger(__name__)

EVENT_NEW = "new"
EVENT_TIMED = "timed"


class ActivityMonitor:
    """Polls ShowStart for keyword matches and notifies on state transitions.

    Runs as Booting -> Bootstrapping (first run only) -> Polling ->
    ShuttingDown. Shutdown is cooperative: the shutdown event is observed
    while waiting for the next tick and after each keyword. An HTTP call
    already in flight runs to completion or to its own timeout.
    """

    def __init__(
        self,
        config: AppConfig,
        source: ActivitySource,
        store: DeduplicationStore,
        notifier: Notifier,
    ):
        self.config = config
        self.source = source
        self.store = store
        self.notifier = notifier
        self.shutdown_event = asyncio.Event()
        self.shutdown_reason: Optional[str] = None
        self.check_count = 0

    @property
    def keywords(self) -> List[str]:
        return self.config.monitor.keywords

    @property
    def city_code(self) -> str:
        return self.config.monitor.city_code

    @property
    def interval(self) -> float:
        return self.config.monitor.interval

    def request_shutdown(self, reason: str = "shutdown requested") -> None:
        if not self.shutdown_event.is_set():
            self.shutdown_reason = reason
            self.shutdown_event.set()

    def install_signal_handlers(self) -> None:
        """Request shutdown on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._handle_shutdown, signum)
            except NotImplementedError:
                signal.signal(signum, lambda s, frame: self._handle_shutdown(s))

    def _handle_shutdown(self, signum) -> None:
        """Handle shutdown signals gracefully."""
        logger.warning(f"Received signal {signum}, initiating graceful shutdown...")
        self.request_shutdown(f"signal {signum}")

    async def run(self) -> Optional[str]:
        """Run the monitoring loop until shutdown is requested.

        Returns:
            The reason passed to :meth:`request_shutdown`.
        """
        logger.info(
            f"🚀 Starting ShowStart monitor: {len(self.keywords)} keyword(s), "
            f"city {self.city_code}, every {self.interval:.0f}s"
        )
        await self._boot()
        await self.ensure_initialized()

        loop = asyncio.get_running_loop()
        while not self.shutdown_event.is_set():
            started = loop.time()
            await self.run_tick()
            if self.shutdown_event.is_set():
                break
            await self._wait_until(started + self.interval)

        logger.info(f"✅ Monitoring stopped ({self.shutdown_reason})")
        return self.shutdown_reason

    async def run_once(self) -> None:
        """Boot, bootstrap if needed and run exactly one tick, for scheduled invocations."""
        logger.info(f"🎯 Running a single check for {len(self.keywords)} keyword(s)")
        await self._boot()
        await self.ensure_initialized()
        await self.run_tick()

    async def _boot(self) -> None:
        try:
            await self.source.refresh_token()
        except Exception as e:
            logger.warning(f"⚠️ Could not refresh session token, requests will retry on their own: {e}")

    async def ensure_initialized(self) -> None:
        """Seed the store with every current match without notifying.

        Keyword failures are alerted and skipped. Nothing is marked when
        shutdown is requested part way through.
        """
        if self.store.is_initialized():
            return

        logger.info("🌱 First run: recording currently listed activities without notifying")
        seen_ids: List[str] = []
        timed_ids: List[str] = []

        for keyword in self.keywords:
            if self.shutdown_event.is_set():
                logger.info("Bootstrap interrupted by shutdown")
                return
            try:
                activities = await self.source.search(self.city_code, keyword)
            except Exception as e:
                logger.warning(f"Bootstrap query for '{keyword}' failed: {e}")
                await self.alert(f"Bootstrap failed: query for keyword {keyword} raised: {e}")
                continue

            seen, timed = self._collect_ids(keyword, activities)
            seen_ids.extend(seen)
            timed_ids.extend(timed)

        self.store.batch_mark(seen_ids, timed_ids)
        self.store.mark_initialized()
        logger.info(f"✅ State initialized: {len(seen_ids)} seen, {len(timed_ids)} timed")

    @staticmethod
    def _collect_ids(keyword: str, activities: List[Activity]) -> Tuple[List[str], List[str]]:
        normalized = normalize(keyword)
        seen: List[str] = []
        timed: List[str] = []
        for activity in activities:
            if not is_candidate(activity, normalized):
                continue
            seen.append(activity.key)
            if activity.supports_timed_purchase:
                timed.append(activity.key)
        return seen, timed

    async def run_tick(self) -> None:
        """Check every keyword once, in order."""
        self.check_count += 1
        logger.info(f"🔄 Starting check #{self.check_count} at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

        for keyword in self.keywords:
            await self.check_keyword(keyword)
            if self.shutdown_event.is_set():
                logger.info("Check interrupted by shutdown")
                return

    async def check_keyword(self, keyword: str) -> None:
        """Query one keyword and dispatch notifications for its matches."""
        try:
            activities = await self.source.search(self.city_code, keyword)
        except Exception as e:
            logger.error(f"❌ Query for '{keyword}' failed: {e}")
            await self.alert(f"Activity query for keyword {keyword} failed: {e}")
            return

        if not activities:
            logger.debug(f"No activities for '{keyword}'")
            return

        normalized = normalize(keyword)
        for activity in activities:
            if not is_candidate(activity, normalized):
                continue
            if self.config.monitor.notify_new_events:
                await self._process_new(activity, keyword)
            await self._process_timed(activity, keyword)

    async def _process_new(self, activity: Activity, keyword: str) -> None:
        if self.store.has_seen(activity.key):
            return
        if not await self._notify(EVENT_NEW, activity, keyword):
            return
        self.store.mark_seen(activity.key)
        logger.info(f"🆕 New activity for '{keyword}': {activity.title} ({activity.key})")

    async def _process_timed(self, activity: Activity, keyword: str) -> None:
        if not activity.supports_timed_purchase or self.store.has_timed(activity.key):
            return
        if not await self._notify(EVENT_TIMED, activity, keyword):
            return
        self.store.batch_mark([activity.key], [activity.key])
        logger.info(f"⏰ Timed purchase open for '{keyword}': {activity.title} ({activity.key})")

    async def _notify(self, event_type: str, activity: Activity, keyword: str) -> bool:
        try:
            await self.notifier.send_structured(
                event_type,
                keyword,
                activity.title,
                activity.show_time,
                activity.site_name,
                activity.detail_url,
            )
        except NotificationError as e:
            logger.error(f"❌ Failed to send {event_type} notification for {activity.key}: {e}")
            await self.alert(
                f"Notification failed: keyword={keyword}, activity={activity.title}, error={e}"
            )
            return False
        return True

    async def alert(self, message: str) -> None:
        """Raise an operator alert; delivery failures are only logged."""
        try:
            await self.notifier.send_alert(message)
        except NotificationError as e:
            logger.warning(f"Failed to send alert: {e}")

    async def _wait_until(self, deadline: float) -> None:
        """Wait until ``deadline`` (event loop time) or until shutdown is requested."""
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            return

        next_check = datetime.now() + timedelta(seconds=remaining)
        logger.info(f"⏳ Next check at ~{next_check.strftime('%H:%M:%S')} (in {remaining:.0f}s)")
        try:
            await asyncio.wait_for(self.shutdown_event.wait(), timeout=remaining)
        except asyncio.TimeoutError:
            pass


async def main(config: AppConfig, once: bool = False) -> Optional[str]:
    """Build the monitor from ``config`` and run it.

    Raises:
        StateError: if the state directory is unusable or holds malformed state.
    """
    store = DeduplicationStore(config.monitor.state_dir)
    notifier = create_notifier(config.notification)

    async with ActivityQueryClient(config.credentials, config.transport) as client:
        monitor = ActivityMonitor(config, client, store, notifier)
        if once:
            await monitor.run_once()
            return None
        monitor.install_signal_handlers()
        return await monitor.run()
