"""
On-demand voucher issuance.

Voucher-group creation on the controller is not idempotent. When a create
ends with an unknown outcome the service remembers it per site and, before
any further create on that site, lists the site's voucher groups to learn
whether it actually happened. Each create carries a unique group name so
the listing can identify it.
"""

import threading
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from pydantic import BaseModel

from ..db.db_base import utc_now
from ..enums import SiteStatus
from ..exceptions import (
    AmbiguousOutcomeError,
    BaseError,
    ErrorCode,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from ..repositories.mirror_repository import MirrorRepository
from ..schemas.controller_schemas import (
    RemoteVoucherGroup,
    SiteRecord,
    Voucher,
    VoucherPlanSpec,
)
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..adapters.controller_client import ControllerClient
    from .sync_service import SyncScheduler

# Controller limit on voucher-group names
GROUP_NAME_PREFIX_LENGTH = 10


class PendingCreate(BaseModel):
    """A create whose outcome is not yet known."""

    group_name: str
    plan_spec: VoucherPlanSpec
    started_at: datetime


class VoucherService:
    def __init__(
        self,
        client: "ControllerClient",
        mirror: MirrorRepository,
        scheduler: Optional["SyncScheduler"] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.mirror = mirror
        self.scheduler = scheduler
        self.clock = clock or utc_now
        self.logger = get_logger()

        self._lock = threading.Lock()
        self._site_locks: Dict[str, threading.Lock] = {}
        self._pending: Dict[str, PendingCreate] = {}

    def create_vouchers(self, site_id: str, plan_spec: VoucherPlanSpec) -> List[Voucher]:
        """
        Create ``plan_spec.quantity`` vouchers on a site and mirror them.

        Raises:
            AmbiguousOutcomeError: the create may or may not have happened and
                the controller does not show it yet
            NotFoundError: the site is gone remotely (a targeted re-sync runs first)
        """
        site = self._require_site(site_id)

        with self._site_lock(site.id):
            try:
                pending = self._pending.get(site.id)
                if pending is not None:
                    self._reconcile_pending(site, pending)

                group_name = self._unique_group_name(plan_spec.name)
                spec = plan_spec.model_copy(update={"name": group_name})
                group_id = self._create_group(site, spec)
                return self._mirror_group(site, group_id, spec)
            except NotFoundError:
                self._resync(site)
                raise

    def pending_creates(self) -> Dict[str, str]:
        """Site id -> group name of creates whose outcome is unknown."""
        with self._lock:
            return {site_id: p.group_name for site_id, p in self._pending.items()}

    # ==================== CREATE FLOW ====================

    def _create_group(self, site: SiteRecord, spec: VoucherPlanSpec) -> str:
        try:
            return self.client.create_voucher_group(site.remote_site_id, spec)
        except AmbiguousOutcomeError:
            self._set_pending(site.id, PendingCreate(
                group_name=spec.name, plan_spec=spec, started_at=self.clock()
            ))
            self.logger.warning(
                "Voucher group create outcome unknown, checking controller",
                extra={"site_id": site.id, "group_name": spec.name},
            )
            group = self._find_group(site, spec.name)
            if group is None:
                raise
            self._clear_pending(site.id)
            return group.group_id

    def _reconcile_pending(self, site: SiteRecord, pending: PendingCreate) -> None:
        """
        Settle an earlier unknown create before issuing a new one. A group
        found by name is mirrored; one still absent is taken as never created.
        """
        group = self._find_group(site, pending.group_name)
        if group is not None:
            self.logger.info(
                "Earlier voucher group create did happen, mirroring it",
                extra={"site_id": site.id, "group_id": group.group_id},
            )
            self._mirror_group(site, group.group_id, pending.plan_spec)
        else:
            self.logger.info(
                "Earlier voucher group create did not happen",
                extra={"site_id": site.id, "group_name": pending.group_name},
            )
        self._clear_pending(site.id)

    def _find_group(self, site: SiteRecord, group_name: str) -> Optional[RemoteVoucherGroup]:
        for group in self.client.list_voucher_groups(site.remote_site_id):
            if group.name == group_name:
                return group
        return None

    def _mirror_group(self, site: SiteRecord, group_id: str, spec: VoucherPlanSpec) -> List[Voucher]:
        group = self.client.get_voucher_group(site.remote_site_id, group_id)
        if not group.vouchers:
            raise ServiceError(
                "Voucher group was created but the controller returned no vouchers",
                error_code=ErrorCode.EXTERNAL_API_ERROR,
                operation="create_vouchers",
                site_id=site.id,
                group_id=group_id,
            )
        if not group.unit_price and spec.unit_price:
            updates = {"unit_price": spec.unit_price}
            if spec.currency:
                updates["currency"] = spec.currency
            group = group.model_copy(update=updates)

        result = self.mirror.upsert_vouchers(site.id, [group], plan_id=spec.plan_id)
        self.logger.info(
            "Vouchers issued",
            extra={"site_id": site.id, "group_id": group_id, "count": len(result.vouchers)},
        )
        return result.vouchers

    # ==================== HELPERS ====================

    def _require_site(self, site_id: str) -> SiteRecord:
        site = self.mirror.get_site(site_id=site_id)
        if site is None:
            raise NotFoundError(f"Site {site_id} is not known locally", resource_type="site")
        if site.status == SiteStatus.INACTIVE.value:
            raise ValidationError(
                f"Site {site.name} is inactive", field="site_id", site_id=site_id
            )
        return site

    def _resync(self, site: SiteRecord) -> None:
        if self.scheduler is None:
            return
        try:
            self.scheduler.resync_site(site.id)
        except BaseError as e:
            self.logger.warning(
                "Targeted site re-sync failed", extra={"site_id": site.id, "error_type": e.error_type}
            )

    def _unique_group_name(self, plan_name: str) -> str:
        return f"{plan_name[:GROUP_NAME_PREFIX_LENGTH]} - {uuid.uuid4().hex[:8].upper()}"

    def _site_lock(self, site_id: str) -> threading.Lock:
        with self._lock:
            return self._site_locks.setdefault(site_id, threading.Lock())

    def _set_pending(self, site_id: str, pending: PendingCreate) -> None:
        with self._lock:
            self._pending[site_id] = pending

    def _clear_pending(self, site_id: str) -> None:
        with self._lock:
            self._pending.pop(site_id, None)
