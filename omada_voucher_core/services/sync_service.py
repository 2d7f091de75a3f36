"""
Synchronization Scheduler.

Periodically reconciles the local mirror against the controller: sites
first, then vouchers and usage for each active site. At most one run is in
flight; a trigger while running is dropped.
"""

import threading
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple

from ..config import SyncConfig, get_config
from ..db.db_base import utc_now
from ..enums import StepStatus, SyncOutcome, SyncState
from ..exceptions import (
    BaseError,
    CredentialError,
    ErrorCode,
    NotFoundError,
    RateLimitedError,
    ServiceError,
    TransientError,
    clear_correlation_id,
    set_correlation_id,
)
from ..repositories.mirror_repository import MirrorRepository
from ..schemas.controller_schemas import SiteRecord, Voucher
from ..schemas.sync_schemas import SyncRun, SyncStatus, SyncStepResult
from ..utils.backoff_utils import calculate_exponential_backoff
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..adapters.controller_client import ControllerClient

VouchersUsedCallback = Callable[[str, List[Voucher]], None]
StepFn = Callable[[Optional[SiteRecord]], int]


def _error_details(error: Exception) -> dict:
    if isinstance(error, BaseError):
        return {"type": error.error_type, "code": error.error_code.value, "message": error.message}
    return {"type": type(error).__name__, "code": None, "message": str(error)}


class SyncScheduler:
    """
    Background reconciliation loop.

    ``sleep`` replaces the interruptible backoff wait in tests; by default
    backoff waits end early when ``stop()`` is called.
    """

    def __init__(
        self,
        client: "ControllerClient",
        mirror: MirrorRepository,
        config: Optional[SyncConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], None]] = None,
        on_vouchers_used: Optional[VouchersUsedCallback] = None,
    ):
        self.client = client
        self.mirror = mirror
        self.config = config or get_config().sync
        self.clock = clock or utc_now
        self.sleep = sleep
        self.on_vouchers_used = on_vouchers_used
        self.logger = get_logger()

        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state = SyncState.IDLE
        self._last_run: Optional[SyncRun] = None
        self._current_run: Optional[SyncRun] = None

    # ==================== LIFECYCLE ====================

    def start(self) -> None:
        """
        Start the background thread (no-op if already running).

        Raises:
            ServiceError: An earlier thread is still finishing after stop()
        """
        if self._thread is not None and self._thread.is_alive():
            if not self.stopping:
                return
            raise ServiceError(
                "Previous sync thread is still stopping",
                error_code=ErrorCode.INVALID_STATE_TRANSITION,
                operation="start_sync_scheduler",
            )
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="omada-sync", daemon=True)
        self._thread.start()
        self.logger.info(
            "Sync scheduler started", extra={"interval_seconds": self.config.interval_seconds}
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Request shutdown. A run in flight stops at the next step boundary;
        a write already started always completes.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        if thread is not None and thread.is_alive():
            self.logger.warning(
                "Sync thread still finishing its step", extra={"timeout": timeout}
            )
            return
        self._thread = None
        self.logger.info("Sync scheduler stopped")

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def _loop(self) -> None:
        if self.config.run_on_start:
            self.run_once(trigger="startup")
        while not self._stop_event.wait(self.config.interval_seconds):
            self.run_once(trigger="scheduled")

    # ==================== RUNS ====================

    def trigger(self) -> Optional[SyncRun]:
        """Run now in the caller's thread. Returns None if a run is already in flight."""
        return self.run_once(trigger="manual")

    def run_once(self, trigger: str = "manual") -> Optional[SyncRun]:
        if not self._run_lock.acquire(blocking=False):
            self.logger.info("Sync already running, trigger dropped", extra={"trigger": trigger})
            return None

        run = SyncRun(run_id=str(uuid.uuid4()), started_at=self.clock())
        try:
            self._state = SyncState.RUNNING
            self._current_run = run
            set_correlation_id(run.run_id)
            self.logger.info("Sync run started", extra={"run_id": run.run_id, "trigger": trigger})
            try:
                self._execute(run)
            except Exception as e:
                self.logger.exception("Sync run crashed", extra={"run_id": run.run_id})
                run.outcome = SyncOutcome.FAILED
                run.error = _error_details(e)

            run.finished_at = self.clock()
            self._last_run = run
            self.logger.info(
                "Sync run finished",
                extra={
                    "run_id": run.run_id,
                    "outcome": run.outcome.value,
                    "items_reconciled": run.items_reconciled,
                },
            )
            return run
        finally:
            clear_correlation_id()
            self._current_run = None
            self._state = SyncState.IDLE
            self._run_lock.release()

    def _execute(self, run: SyncRun) -> None:
        interrupted = False
        try:
            sites_step, _ = self._run_step(run, "sites", None, self._sync_sites)
            if sites_step.status != StepStatus.SUCCEEDED:
                run.outcome = SyncOutcome.FAILED
                run.error = sites_step.error
                return

            for site in self.mirror.list_active_sites():
                if self.stopping:
                    interrupted = True
                    break
                if not self._sync_site_steps(run, site):
                    interrupted = True
                    break
        except CredentialError as e:
            self.client.tokens.invalidate()
            run.outcome = SyncOutcome.FAILED
            run.error = _error_details(e)
            self.logger.error(
                "Sync run aborted: controller rejected credentials", extra={"run_id": run.run_id}
            )
            return

        failed = any(step.status == StepStatus.FAILED for step in run.steps)
        if failed or interrupted:
            run.outcome = SyncOutcome.PARTIALLY_FAILED
        else:
            run.outcome = SyncOutcome.SUCCEEDED

    def _sync_site_steps(self, run: SyncRun, site: SiteRecord) -> bool:
        """Run the per-site steps. Returns False if shutdown cut them short."""
        steps: List[Tuple[str, StepFn]] = [
            ("vouchers", self._sync_vouchers),
            ("usage", self._sync_usage),
        ]
        for name, fn in steps:
            if self.stopping:
                return False
            _, error = self._run_step(run, name, site, fn)
            if isinstance(error, NotFoundError):
                try:
                    self.resync_site(site.id)
                except CredentialError:
                    raise
                except BaseError as e:
                    self.logger.warning(
                        "Targeted site re-sync failed",
                        extra={"site_id": site.id, "error_type": e.error_type},
                    )
                return True
        return True

    def _run_step(
        self, run: SyncRun, name: str, site: Optional[SiteRecord], fn: StepFn
    ) -> Tuple[SyncStepResult, Optional[Exception]]:
        """
        Run one step with retries. CredentialError propagates; every other
        failure is recorded on the step and returned.
        """
        step = SyncStepResult(name=name, site_id=site.id if site else None, status=StepStatus.SKIPPED)
        run.steps.append(step)

        while True:
            step.attempts += 1
            try:
                step.items = fn(site)
                step.status = StepStatus.SUCCEEDED
                run.items_reconciled += step.items
                return step, None
            except CredentialError as e:
                step.status = StepStatus.FAILED
                step.error = _error_details(e)
                raise
            except (TransientError, RateLimitedError) as e:
                if step.attempts >= self.config.max_step_attempts or self.stopping:
                    return self._fail_step(step, e)
                delay = self._retry_delay(e, step.attempts)
                self.logger.warning(
                    "Sync step failed, retrying",
                    extra={
                        "step": name,
                        "site_id": step.site_id,
                        "attempt": step.attempts,
                        "delay_seconds": delay,
                    },
                )
                if self._wait(delay):
                    return self._fail_step(step, e)
            except BaseError as e:
                return self._fail_step(step, e)

    def _fail_step(
        self, step: SyncStepResult, error: Exception
    ) -> Tuple[SyncStepResult, Optional[Exception]]:
        step.status = StepStatus.FAILED
        step.error = _error_details(error)
        self.logger.warning(
            "Sync step failed",
            extra={"step": step.name, "site_id": step.site_id, "attempts": step.attempts},
        )
        return step, error

    def _retry_delay(self, error: Exception, attempts: int) -> float:
        if isinstance(error, RateLimitedError):
            return error.retry_after
        return calculate_exponential_backoff(
            attempts - 1,
            base_delay=self.config.backoff_base_seconds,
            max_delay=self.config.backoff_max_seconds,
            jitter=self.config.backoff_jitter,
        )

    def _wait(self, delay: float) -> bool:
        """Sleep for ``delay``; returns True if shutdown was requested."""
        if self.sleep is not None:
            self.sleep(delay)
        else:
            self._stop_event.wait(delay)
        return self.stopping

    # ==================== STEPS ====================

    def _sync_sites(self, _site: Optional[SiteRecord]) -> int:
        sites = self.client.list_sites()
        self.mirror.upsert_sites(sites)
        return len(sites)

    def _sync_vouchers(self, site: SiteRecord) -> int:
        groups = self.client.list_vouchers(site.remote_site_id)
        result = self.mirror.upsert_vouchers(site.id, groups)
        if result.newly_used and self.on_vouchers_used is not None:
            self.on_vouchers_used(site.id, result.newly_used)
        return result.inserted + result.updated

    def _sync_usage(self, site: SiteRecord) -> int:
        usage = self.client.get_usage_summary(site.remote_site_id)
        self.mirror.upsert_usage(site.id, usage)
        return 1

    def resync_site(self, site_id: str) -> Optional[SiteRecord]:
        """
        Targeted re-sync of one site after a NotFoundError.

        A site the controller no longer lists is soft-marked inactive;
        otherwise its vouchers and usage are refreshed. Returns the site as
        mirrored afterwards, or None if it is not known locally.
        """
        site = self.mirror.get_site(site_id=site_id)
        if site is None:
            return None

        self.logger.info("Targeted site re-sync", extra={"site_id": site.id})
        remote = {s.site_id: s for s in self.client.list_sites()}.get(site.remote_site_id)
        if remote is None:
            self.mirror.mark_site_inactive(site.remote_site_id)
            return self.mirror.get_site(site_id=site.id)

        self.mirror.upsert_sites([remote], deactivate_missing=False)
        try:
            self._sync_vouchers(site)
            self._sync_usage(site)
        except NotFoundError:
            self.mirror.mark_site_inactive(site.remote_site_id)
        return self.mirror.get_site(site_id=site.id)

    # ==================== STATUS ====================

    def get_status(self) -> SyncStatus:
        return SyncStatus(
            state=self._state,
            running=self._thread is not None and self._thread.is_alive(),
            interval_seconds=self.config.interval_seconds,
            current_run=self._current_run,
            last_run=self._last_run,
        )
