"""Background job that emails a reminder for tasks that are about to fall due.

Every ``SCAN_INTERVAL_MINUTES`` the scanner looks at pending, not yet
notified tasks and notifies those whose due moment lies in
``[now - NOTIFY_WINDOW_BEFORE_MINUTES, now + NOTIFY_WINDOW_AFTER_MINUTES]``.
All times are interpreted in the single ``SCHEDULER_TIMEZONE``.

A successful send sets ``notified`` so the task is never reminded twice. A
failed send leaves it unset and counts an attempt; the task is offered again
on later runs until ``MAX_NOTIFICATION_ATTEMPTS`` attempts have failed.
"""

import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import config
import utils
from email_service import send_task_due_notification

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    candidates: int = 0
    due: int = 0
    notified: int = 0
    failed: int = 0
    skipped: int = 0


def due_instant(task, tz):
    """Exact due moment of ``task`` as an aware datetime in ``tz``."""
    due_date = datetime.fromisoformat(utils.parse_due_date(task['due_date']))
    hour, minute = map(int, utils.parse_due_time(task['due_time']).split(':'))
    return due_date.replace(hour=hour, minute=minute, tzinfo=tz)


class DueTaskScanner:
    def __init__(self, store=utils, notifier=send_task_due_notification, clock=None,
                 interval_minutes=None, before_minutes=None, after_minutes=None,
                 timeout_seconds=None, max_attempts=None, tz_name=None):
        self.store = store
        self.notifier = notifier
        self.tz = ZoneInfo(tz_name or config.SCHEDULER_TIMEZONE)
        self.clock = clock or (lambda: datetime.now(self.tz))
        self.interval = timedelta(minutes=max(1, config.SCAN_INTERVAL_MINUTES if interval_minutes is None else interval_minutes))
        self.before = timedelta(minutes=config.NOTIFY_WINDOW_BEFORE_MINUTES if before_minutes is None else before_minutes)
        self.after = timedelta(minutes=config.NOTIFY_WINDOW_AFTER_MINUTES if after_minutes is None else after_minutes)
        self.timeout_seconds = config.SCAN_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        self.max_attempts = config.MAX_NOTIFICATION_ATTEMPTS if max_attempts is None else max_attempts
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread = None

    def _now(self):
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    def run_once(self):
        """Run a single scan. Returns a ScanResult, or None if a scan is already running."""
        if not self._run_lock.acquire(blocking=False):
            logger.warning('Previous scan still running, skipping this one')
            return None
        try:
            return self._scan()
        finally:
            self._run_lock.release()

    def _scan(self):
        result = ScanResult()
        started = time.monotonic()
        now = self._now()
        # Window arithmetic in UTC so DST transitions don't skew it
        now_utc = now.astimezone(timezone.utc)
        window_start = now_utc - self.before
        window_end = now_utc + self.after

        candidates = self.store.find_due_candidates(
            window_start.astimezone(self.tz).date(),
            window_end.astimezone(self.tz).date(),
            self.max_attempts,
        )
        result.candidates = len(candidates)
        logger.info('Scanning for due tasks at %s: %d candidate(s)', now.isoformat(), len(candidates))

        for task in candidates:
            if time.monotonic() - started > self.timeout_seconds:
                logger.warning('Scan exceeded %ss, leaving remaining tasks for the next run', self.timeout_seconds)
                break
            try:
                self._process(task, now, window_start, window_end, result)
            except Exception:
                result.failed += 1
                logger.exception('Error processing task %s', task.get('id'))

        logger.info('Scan finished: %d due, %d notified, %d failed, %d skipped',
                    result.due, result.notified, result.failed, result.skipped)
        return result

    def _process(self, task, now, window_start, window_end, result):
        task_id = task['id']
        try:
            due = due_instant(task, self.tz).astimezone(timezone.utc)
        except (KeyError, ValueError) as e:
            logger.warning('Task %s has an unreadable due date/time: %s', task_id, e)
            result.skipped += 1
            return
        if not window_start <= due <= window_end:
            return
        result.due += 1

        email = self.store.get_task_owner_email(task)
        if not email:
            logger.warning('No email found for owner of task %s, skipping', task_id)
            result.skipped += 1
            return

        try:
            sent = self.notifier(email, task['name'], task['due_date'], task['due_time'])
        except Exception:
            logger.exception('Notifier raised for task %s', task_id)
            sent = False
        if sent:
            self.store.mark_task_notified(task_id)
            result.notified += 1
            logger.info('Task %s marked as notified', task_id)
        else:
            self.store.record_notification_failure(task_id, now)
            result.failed += 1
            logger.warning('Notification for task %s failed, will retry on a later run', task_id)

    def _loop(self):
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                # A broken run must not kill the schedule
                logger.exception('Due-task scan failed')
            self._stop_event.wait(self.interval.total_seconds())

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name='due-task-scanner', daemon=True)
        self._thread.start()
        logger.info('Due-task scanner started (every %s, timezone %s)', self.interval, self.tz.key)

    def stop(self, timeout=None):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None


_scanner = None


def start_scanner():
    """Start the process-wide scanner once; returns it, or None when not started."""
    global _scanner
    if not config.SCANNER_ENABLED:
        logger.info('Due-task scanner disabled')
        return None
    # With the debug reloader only the child process (WERKZEUG_RUN_MAIN=true) should scan
    run_main = os.environ.get('WERKZEUG_RUN_MAIN')
    if config.DEBUG and run_main != 'true':
        logger.info('Due-task scanner skipped (WERKZEUG_RUN_MAIN=%s)', run_main)
        return None
    if _scanner is None:
        _scanner = DueTaskScanner()
    _scanner.start()
    return _scanner
