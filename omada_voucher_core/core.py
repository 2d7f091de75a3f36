"""
Wiring and outbound surface of the controller integration core.

``VoucherCore`` builds every component from an ``AppConfig`` and exposes the
operations the hosting application calls. Results are plain dicts:
``{"success": True, "data": ...}`` or ``{"success": False, "error": {...}}``,
with secrets redacted from both.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

import requests
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_jsonable_python

from .adapters.controller_client import ControllerClient
from .config import AppConfig, get_config
from .db.db_config import DatabaseConfig, DatabaseManager, close_db, initialize_db
from .exceptions import BaseError, ErrorCode, ValidationError
from .repositories.credential_repository import CredentialStore, SQLCredentialStore
from .repositories.mirror_repository import MirrorRepository
from .schemas.controller_schemas import Voucher, VoucherPlanSpec
from .schemas.credential_schemas import Credential
from .services.credential_service import CredentialService
from .services.diagnostics_service import DiagnosticsService
from .services.sync_service import SyncScheduler
from .services.voucher_service import VoucherService
from .utils.credential_utils import redact_secrets
from .utils.logger import configure_logging, get_logger

Response = Dict[str, Any]


class VoucherCore:
    def __init__(
        self,
        db_manager: DatabaseManager,
        config: Optional[AppConfig] = None,
        credential_store: Optional[CredentialStore] = None,
        session: Optional[requests.Session] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], None]] = None,
        on_vouchers_used: Optional[Callable[[str, List[Voucher]], None]] = None,
    ):
        self.config = config or get_config()
        self.db_manager = db_manager
        self.logger = get_logger()

        store = credential_store or SQLCredentialStore(
            db_manager, self.config.security.encryption_key
        )
        self.credentials = CredentialService(store)
        self.client = ControllerClient(
            self.credentials,
            config=self.config.controller,
            token_config=self.config.token,
            session=session,
            clock=clock,
        )
        self.mirror = MirrorRepository(db_manager, clock=clock)
        self.scheduler = SyncScheduler(
            self.client,
            self.mirror,
            config=self.config.sync,
            clock=clock,
            sleep=sleep,
            on_vouchers_used=on_vouchers_used,
        )
        self.vouchers = VoucherService(self.client, self.mirror, self.scheduler, clock=clock)
        self.diagnostics = DiagnosticsService(self.credentials, self.client)
        self._owns_db = False

    @classmethod
    def from_config(cls, config: Optional[AppConfig] = None, **kwargs: Any) -> "VoucherCore":
        """Configure logging, open the database and build the core."""
        config = config or get_config()
        configure_logging(
            "voucher-core",
            log_level=config.logging.level,
            enable_queue=config.features.enable_logs_queue,
            queue_name=config.queue.logs_queue_name,
            connection_string=config.queue.connection_string,
        )
        url = config.database.connection_string
        db_manager = initialize_db(
            DatabaseConfig(
                db_type="sqlite" if url.startswith("sqlite") else "postgres",
                database="",
                url=url,
                pool_size=config.database.pool_size,
                max_overflow=config.database.max_overflow,
                pool_timeout=config.database.pool_timeout,
                echo=config.database.echo,
            )
        )
        core = cls(db_manager, config, **kwargs)
        core._owns_db = True
        return core

    # ==================== LIFECYCLE ====================

    def start(self) -> None:
        self.credentials.load()
        if self.config.features.enable_auto_sync:
            self.scheduler.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self.scheduler.stop(timeout)
        if self._owns_db:
            close_db()
            self._owns_db = False

    # ==================== OUTBOUND SURFACE ====================

    def get_credential_summary(self) -> Response:
        return self._respond(self.diagnostics.get_credential_summary)

    def test_credentials(self) -> Response:
        result = self.diagnostics.test_credentials()
        response: Response = {"success": result.success, "data": result.model_dump(mode="json")}
        if not result.success:
            response["error"] = {
                "type": result.error_type,
                "code": result.error_code,
                "message": result.message,
            }
        return self._redact(response)

    def clear_token_cache(self) -> Response:
        return self._respond(self.diagnostics.clear_token_cache)

    def get_token_info(self) -> Response:
        return self._respond(self.diagnostics.get_token_info)

    def update_credentials(self, data: Union[Credential, Dict[str, Any]]) -> Response:
        return self._respond(lambda: self.diagnostics.update_credentials(data))

    def create_voucher(
        self, site_id: str, plan_spec: Union[VoucherPlanSpec, Dict[str, Any]]
    ) -> Response:
        return self._respond(
            lambda: self.vouchers.create_vouchers(site_id, self._parse_plan(plan_spec))
        )

    def get_sync_status(self) -> Response:
        return self._respond(self.scheduler.get_status)

    def trigger_sync(self) -> Response:
        def _trigger():
            run = self.scheduler.trigger()
            return {"triggered": run is not None, "run": run}

        return self._respond(_trigger)

    def resync_site(self, site_id: str) -> Response:
        return self._respond(lambda: self.scheduler.resync_site(site_id))

    # ==================== HELPERS ====================

    def _parse_plan(self, plan_spec: Union[VoucherPlanSpec, Dict[str, Any]]) -> VoucherPlanSpec:
        if isinstance(plan_spec, VoucherPlanSpec):
            return plan_spec
        try:
            return VoucherPlanSpec(**plan_spec)
        except PydanticValidationError as e:
            invalid_fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise ValidationError(
                f"Invalid voucher plan: {', '.join(invalid_fields)}",
                field="plan_spec",
                error_code=ErrorCode.INVALID_FORMAT,
                invalid_fields=invalid_fields,
            ) from e

    def _respond(self, operation: Callable[[], Any]) -> Response:
        try:
            data = operation()
        except BaseError as e:
            error = to_jsonable_python(e.to_dict()["error"])
            return self._redact({"success": False, "error": error})
        return self._redact({"success": True, "data": to_jsonable_python(data)})

    def _redact(self, response: Response) -> Response:
        return redact_secrets(response, self.credentials.known_secrets())
