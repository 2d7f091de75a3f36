"""
Local Persistence Mirror.

Writes reconciled controller state (sites, vouchers, usage) to the local
store. Every public call runs in exactly one transaction.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..constants import DEFAULT_CURRENCY
from ..db.db_base import utc_now
from ..db.db_config import DatabaseManager
from ..db.db_site_models import Site, SiteUsage
from ..db.db_voucher_models import Voucher as VoucherModel
from ..enums import SiteStatus, VoucherStatus
from ..exceptions import ErrorCode, RepositoryError
from ..schemas.controller_schemas import (
    RemoteSite,
    RemoteVoucherGroup,
    SiteBatchResult,
    SiteRecord,
    UsageSummary,
    Voucher,
    VoucherBatchResult,
)
from ..utils.logger import get_logger


class MirrorRepository:
    def __init__(
        self,
        db_manager: DatabaseManager,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db_manager = db_manager
        self.clock = clock or utc_now
        self.logger = get_logger()

    @contextmanager
    def _transaction(self, operation: str):
        try:
            with self.db_manager.transaction() as session:
                yield session
        except SQLAlchemyError as e:
            raise RepositoryError(
                f"Mirror {operation} failed",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                operation=operation,
            ) from e

    # ==================== SITES ====================

    def upsert_sites(
        self, sites: Iterable[RemoteSite], deactivate_missing: bool = True
    ) -> SiteBatchResult:
        """
        Insert or update sites by remote id.

        With ``deactivate_missing`` the batch is taken as the complete remote
        list, and any active local site absent from it is soft-marked inactive.
        """
        now = self.clock()
        result = SiteBatchResult()
        with self._transaction("upsert_sites") as session:
            existing = {s.remote_site_id: s for s in session.query(Site).all()}
            seen = set()

            for remote in sites:
                seen.add(remote.site_id)
                site = existing.get(remote.site_id)
                if site is None:
                    site = Site(remote_site_id=remote.site_id)
                    session.add(site)
                    result.inserted += 1
                else:
                    result.updated += 1
                site.name = remote.name
                site.location = remote.location
                site.status = SiteStatus.ACTIVE.value
                site.last_synced_at = now

            if deactivate_missing:
                for remote_id, site in existing.items():
                    if remote_id not in seen and site.status != SiteStatus.INACTIVE.value:
                        site.status = SiteStatus.INACTIVE.value
                        result.deactivated += 1

        self.logger.info(
            "Sites mirrored",
            extra={
                "inserted": result.inserted,
                "updated": result.updated,
                "deactivated": result.deactivated,
            },
        )
        return result

    def mark_site_inactive(self, remote_site_id: str) -> bool:
        """Soft-delete a site. Returns False if it is not mirrored."""
        with self._transaction("mark_site_inactive") as session:
            site = session.query(Site).filter(Site.remote_site_id == remote_site_id).first()
            if site is None:
                return False
            site.status = SiteStatus.INACTIVE.value
            site.last_synced_at = self.clock()

        self.logger.warning("Site marked inactive", extra={"remote_site_id": remote_site_id})
        return True

    def get_site(
        self, site_id: Optional[str] = None, remote_site_id: Optional[str] = None
    ) -> Optional[SiteRecord]:
        with self._transaction("get_site") as session:
            query = session.query(Site)
            if site_id is not None:
                query = query.filter(Site.id == site_id)
            elif remote_site_id is not None:
                query = query.filter(Site.remote_site_id == remote_site_id)
            else:
                return None
            site = query.first()
            return SiteRecord.model_validate(site) if site else None

    def list_active_sites(self) -> List[SiteRecord]:
        with self._transaction("list_active_sites") as session:
            sites = (
                session.query(Site)
                .filter(Site.status == SiteStatus.ACTIVE.value)
                .order_by(Site.name)
                .all()
            )
            return [SiteRecord.model_validate(s) for s in sites]

    # ==================== VOUCHERS ====================

    def upsert_vouchers(
        self,
        site_id: str,
        groups: Iterable[RemoteVoucherGroup],
        plan_id: Optional[str] = None,
    ) -> VoucherBatchResult:
        """
        Mirror the vouchers of the given groups for one local site.

        Status only advances (active -> used -> expired); a remote status
        that would move a voucher backwards is ignored. Vouchers that leave
        ``active`` in this batch are reported in ``newly_used``.
        """
        now = self.clock()
        result = VoucherBatchResult()
        with self._transaction("upsert_vouchers") as session:
            existing = {
                v.remote_voucher_id: v
                for v in session.query(VoucherModel).filter(VoucherModel.site_id == site_id).all()
            }

            for group in groups:
                for remote in group.vouchers:
                    voucher = existing.get(remote.voucher_id)
                    if voucher is None:
                        status = remote.status or VoucherStatus.ACTIVE
                        voucher = VoucherModel(
                            remote_voucher_id=remote.voucher_id,
                            site_id=site_id,
                            plan_id=plan_id,
                            group_id=group.group_id,
                            code=remote.code,
                            status=status.value,
                            unit_price=group.unit_price,
                            currency=group.currency or DEFAULT_CURRENCY,
                            used_at=None
                            if status == VoucherStatus.ACTIVE
                            else (remote.started_at or now),
                        )
                        session.add(voucher)
                        existing[remote.voucher_id] = voucher
                        result.inserted += 1
                        result.vouchers.append(voucher)
                        continue

                    previous = VoucherStatus(voucher.status)
                    if plan_id and not voucher.plan_id:
                        voucher.plan_id = plan_id
                    if remote.status is not None and remote.status.rank > previous.rank:
                        voucher.status = remote.status.value
                        if voucher.used_at is None:
                            voucher.used_at = remote.started_at or now
                        result.updated += 1
                        if previous == VoucherStatus.ACTIVE:
                            result.newly_used.append(voucher)
                    result.vouchers.append(voucher)

            session.flush()
            result.newly_used = [Voucher.model_validate(v) for v in result.newly_used]
            result.vouchers = [Voucher.model_validate(v) for v in result.vouchers]

        self.logger.info(
            "Vouchers mirrored",
            extra={
                "site_id": site_id,
                "inserted": result.inserted,
                "updated": result.updated,
                "newly_used": len(result.newly_used),
            },
        )
        return result

    def list_vouchers(
        self, site_id: str, status: Optional[VoucherStatus] = None
    ) -> List[Voucher]:
        with self._transaction("list_vouchers") as session:
            query = session.query(VoucherModel).filter(VoucherModel.site_id == site_id)
            if status is not None:
                query = query.filter(VoucherModel.status == VoucherStatus(status).value)
            return [
                Voucher.model_validate(v) for v in query.order_by(VoucherModel.created_at).all()
            ]

    # ==================== USAGE ====================

    def upsert_usage(self, site_id: str, usage: UsageSummary) -> None:
        """Overwrite the usage snapshot of a site."""
        with self._transaction("upsert_usage") as session:
            row = session.query(SiteUsage).filter(SiteUsage.site_id == site_id).first()
            if row is None:
                row = SiteUsage(site_id=site_id)
                session.add(row)
            row.total = usage.total
            row.unused = usage.unused
            row.used = usage.used
            row.in_use = usage.in_use
            row.expired = usage.expired
            row.total_amount = usage.total_amount
            row.currency = usage.currency
            row.raw_summary = usage.raw
            row.captured_at = self.clock()

    def get_usage(self, site_id: str) -> Optional[UsageSummary]:
        with self._transaction("get_usage") as session:
            row = session.query(SiteUsage).filter(SiteUsage.site_id == site_id).first()
            if row is None:
                return None
            return UsageSummary(
                total=row.total,
                unused=row.unused,
                used=row.used,
                in_use=row.in_use,
                expired=row.expired,
                total_amount=row.total_amount,
                currency=row.currency,
                raw=row.raw_summary or {},
            )
