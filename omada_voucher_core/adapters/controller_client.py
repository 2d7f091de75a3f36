"""
Controller API Client.

Talks to the wireless controller's OpenAPI over HTTPS and classifies every
failure into the controller error taxonomy. Tokens come from the Token Cache;
the client never holds one itself.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import requests

from ..config import ControllerConfig, TokenConfig, get_config
from ..constants import (
    CONTROLLER_CREDENTIAL_ERROR_CODES,
    CONTROLLER_GENERAL_ERROR_CODES,
    CONTROLLER_NOT_FOUND_CODES,
    CONTROLLER_SUCCESS_CODE,
    CONTROLLER_TOKEN_REJECTED_CODES,
    CONTROLLER_VALIDATION_ERROR_CODES,
    DEFAULT_RETRY_AFTER_SECONDS,
    ControllerPath,
    PriceWireUnit,
)
from ..exceptions import (
    AmbiguousOutcomeError,
    CredentialError,
    NotFoundError,
    RateLimitedError,
    TransientError,
    ValidationError,
)
from ..schemas.controller_schemas import (
    RemoteSite,
    RemoteVoucherGroup,
    TokenGrant,
    UsageSummary,
    VoucherPlanSpec,
)
from ..schemas.credential_schemas import Credential
from ..services.credential_service import CredentialService
from ..services.token_service import TokenCache
from ..utils.credential_utils import redact_secrets
from ..utils.logger import get_logger
from ..utils.unit_utils import duration_to_wire, mbps_to_kbps, price_to_wire


def build_voucher_group_payload(
    spec: VoucherPlanSpec,
    price_unit: PriceWireUnit = PriceWireUnit.DECIMAL,
    default_currency: str = "BRL",
) -> Dict[str, Any]:
    """Voucher plan -> controller voucher-group body."""
    down_kbps = mbps_to_kbps(spec.down_limit_mbps)
    up_kbps = mbps_to_kbps(spec.up_limit_mbps)
    payload = {
        "name": spec.name,
        "amount": spec.quantity,
        "codeLength": spec.code_length,
        "codeForm": list(spec.code_form),
        "limitType": spec.limit_type,
        "limitNum": spec.limit_num,
        "durationType": 0,
        "duration": duration_to_wire(spec.duration_minutes),
        "timingType": 0,
        "rateLimit": {
            "mode": 0,
            "customRateLimit": {
                "downLimitEnable": down_kbps > 0,
                "downLimit": down_kbps,
                "upLimitEnable": up_kbps > 0,
                "upLimit": up_kbps,
            },
        },
        "trafficLimitEnable": False,
        "unitPrice": price_to_wire(spec.unit_price, price_unit),
        "currency": spec.currency or default_currency,
        "applyToAllPortals": True,
        "portals": [],
        "logout": True,
    }
    if spec.description:
        payload["description"] = spec.description
    return payload


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> float:
    """``Retry-After`` as seconds; accepts delta-seconds or an HTTP date."""
    if not value:
        return float(DEFAULT_RETRY_AFTER_SECONDS)
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return float(DEFAULT_RETRY_AFTER_SECONDS)
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


class ControllerClient:
    """
    Typed operations against the controller OpenAPI.

    Every call carries a bounded ``(connect, read)`` timeout. A token the
    controller rejects is invalidated and the call is retried exactly once;
    any other credential failure invalidates the token and propagates.
    """

    def __init__(
        self,
        credentials: CredentialService,
        config: Optional[ControllerConfig] = None,
        token_config: Optional[TokenConfig] = None,
        session: Optional[requests.Session] = None,
        token_cache: Optional[TokenCache] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.credentials = credentials
        self.config = config or get_config().controller
        self.session = session or requests.Session()
        self.session.verify = self.config.verify_ssl
        self.tokens = token_cache or TokenCache(credentials, self.authorize, token_config, clock)
        self.logger = get_logger()

    @property
    def timeout(self) -> Tuple[float, float]:
        return (self.config.connect_timeout, self.config.read_timeout)

    # ==================== OPERATIONS ====================

    def authorize(self, credential: Credential) -> TokenGrant:
        """Client-credentials exchange. Does not touch the token cache."""
        url = f"{credential.controller_url}{ControllerPath.TOKEN.value}"
        body = {
            "omadacId": credential.tenant_id,
            "client_id": credential.client_id,
            "client_secret": credential.client_secret.get_secret_value(),
        }
        secrets = [credential.client_secret]
        response = self._send(
            "POST",
            url,
            operation="authorize",
            secrets=secrets,
            params={"grant_type": "client_credentials"},
            json=body,
        )
        result = self._unwrap(response, "authorize", secrets) or {}

        access_token = result.get("accessToken")
        if not access_token:
            raise ValidationError(
                "Token exchange succeeded but returned no access token",
                field="accessToken",
                operation="authorize",
            )
        expires_in = result.get("expiresIn")
        return TokenGrant(
            access_token=access_token,
            expires_in=int(expires_in) if expires_in is not None else None,
        )

    def list_sites(self) -> List[RemoteSite]:
        _, items = self._fetch_pages(
            ControllerPath.SITES, "list_sites", page_size=self.config.page_size
        )
        return [RemoteSite.from_wire(item) for item in items]

    def list_voucher_groups(self, site_id: str) -> List[RemoteVoucherGroup]:
        """Voucher groups of a site, without their vouchers."""
        _, items = self._fetch_pages(
            ControllerPath.VOUCHER_GROUPS,
            "list_voucher_groups",
            page_size=self.config.page_size,
            resource_type="site",
            site_id=site_id,
        )
        return [RemoteVoucherGroup.from_wire(item, self.config.price_wire_unit) for item in items]

    def get_voucher_group(self, site_id: str, group_id: str) -> RemoteVoucherGroup:
        """One voucher group with every voucher in it."""
        first, items = self._fetch_pages(
            ControllerPath.VOUCHER_GROUP,
            "get_voucher_group",
            page_size=self.config.voucher_page_size,
            resource_type="voucher_group",
            site_id=site_id,
            group_id=group_id,
        )
        group = RemoteVoucherGroup.from_wire(
            {**first, "id": first.get("id") or group_id, "data": items},
            self.config.price_wire_unit,
        )
        return group

    def list_vouchers(self, site_id: str) -> List[RemoteVoucherGroup]:
        """Every voucher group of a site, each with its vouchers."""
        return [
            self.get_voucher_group(site_id, group.group_id)
            for group in self.list_voucher_groups(site_id)
        ]

    def create_voucher_group(self, site_id: str, spec: VoucherPlanSpec) -> str:
        """
        Create a voucher group and return its remote id.

        Not idempotent: a timeout after the request was sent raises
        AmbiguousOutcomeError and is never retried here.
        """
        payload = build_voucher_group_payload(
            spec, self.config.price_wire_unit, self.config.default_currency
        )
        result = self._call(
            "POST",
            ControllerPath.VOUCHER_GROUPS,
            "create_voucher_group",
            resource_type="site",
            ambiguous=True,
            json=payload,
            site_id=site_id,
        )
        group_id = (result or {}).get("id")
        if not group_id:
            raise AmbiguousOutcomeError(
                "Voucher group create returned no group id",
                operation="create_voucher_group",
                site_id=site_id,
                group_name=spec.name,
            )
        self.logger.info(
            "Voucher group created",
            extra={"site_id": site_id, "group_id": group_id, "quantity": spec.quantity},
        )
        return str(group_id)

    def get_usage_summary(self, site_id: str) -> UsageSummary:
        result = self._call(
            "GET",
            ControllerPath.USAGE_SUMMARY,
            "get_usage_summary",
            resource_type="site",
            site_id=site_id,
        )
        return UsageSummary.from_wire(
            result or {}, self.config.price_wire_unit, self.config.default_currency
        )

    def test_connectivity(self, token: Optional[str] = None) -> Dict[str, Any]:
        """
        Cheapest authenticated call: the first site page.

        With an explicit ``token`` the call is made once with exactly that
        token, bypassing the cache's retry. A rejection still clears the cache.
        """
        params = {"page": 1, "pageSize": 1}
        if token is None:
            result = self._call("GET", ControllerPath.SITES, "test_connectivity", params=params)
        else:
            credential = self.credentials.current()
            try:
                response = self._send(
                    "GET",
                    self._url(credential, ControllerPath.SITES),
                    operation="test_connectivity",
                    secrets=[credential.client_secret, token],
                    headers=self._auth_headers(token),
                    params=params,
                )
                result = self._unwrap(
                    response, "test_connectivity", [credential.client_secret, token]
                )
            except CredentialError:
                self.tokens.invalidate()
                raise
        result = result or {}
        return {"reachable": True, "site_count": result.get("totalRows")}

    # ==================== PLUMBING ====================

    def _url(self, credential: Credential, path: ControllerPath, **path_params: str) -> str:
        return credential.controller_url + path.value.format(
            tenant_id=credential.tenant_id, **path_params
        )

    def _auth_headers(self, token: str) -> Dict[str, str]:
        return {
            "Authorization": self.config.auth_header_format.format(token=token),
            "Content-Type": "application/json",
        }

    def _fetch_pages(
        self,
        path: ControllerPath,
        operation: str,
        page_size: int,
        resource_type: Optional[str] = None,
        **path_params: str,
    ) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        """Walk ``page``/``pageSize`` pages. Returns the first page and all items."""
        first: Optional[Dict[str, Any]] = None
        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            result = self._call(
                "GET",
                path,
                operation,
                resource_type=resource_type,
                params={"page": page, "pageSize": page_size},
                **path_params,
            ) or {}
            if first is None:
                first = result
            data = result.get("data") or []
            items.extend(data)

            total_rows = int(result.get("totalRows") or 0)
            current_page = int(result.get("currentPage") or page)
            current_size = int(result.get("currentSize") or page_size)
            if not data or current_page * current_size >= total_rows:
                break
            page += 1
        return first or {}, items

    def _call(
        self,
        method: str,
        path: ControllerPath,
        operation: str,
        resource_type: Optional[str] = None,
        ambiguous: bool = False,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        **path_params: str,
    ) -> Any:
        credential = self.credentials.current()
        url = self._url(credential, path, **path_params)

        for attempt in (1, 2):
            token = self.tokens.get_valid_token()
            secrets = [credential.client_secret, token]
            try:
                response = self._send(
                    method,
                    url,
                    operation=operation,
                    secrets=secrets,
                    ambiguous=ambiguous,
                    headers=self._auth_headers(token),
                    params=params,
                    json=json,
                )
                return self._unwrap(response, operation, secrets, resource_type)
            except CredentialError as e:
                self.tokens.invalidate()
                if e.token_rejected and attempt == 1:
                    self.logger.warning(
                        "Access token rejected, retrying once with a fresh token",
                        extra={"operation": operation},
                    )
                    continue
                raise

    def _send(
        self,
        method: str,
        url: str,
        operation: str,
        secrets: Iterable[Any],
        ambiguous: bool = False,
        **kwargs: Any,
    ) -> requests.Response:
        """Issue one request and map transport and HTTP failures."""
        self.logger.debug("Controller request", extra={"method": method, "operation": operation})
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.ConnectTimeout as e:
            raise TransientError(
                f"Timed out connecting to controller during {operation}",
                cause=e,
                operation=operation,
            ) from e
        except requests.exceptions.ReadTimeout as e:
            if ambiguous:
                raise AmbiguousOutcomeError(
                    f"Controller did not answer {operation} in time; outcome unknown",
                    operation=operation,
                    cause=e,
                ) from e
            raise TransientError(
                f"Controller read timed out during {operation}", cause=e, operation=operation
            ) from e
        except requests.exceptions.SSLError as e:
            raise TransientError(
                redact_secrets(f"TLS error talking to controller: {e}", secrets),
                operation=operation,
            ) from e
        except requests.exceptions.ConnectionError as e:
            if ambiguous:
                raise AmbiguousOutcomeError(
                    f"Connection to controller dropped during {operation}; outcome unknown",
                    operation=operation,
                ) from e
            raise TransientError(
                redact_secrets(f"Cannot reach controller: {e}", secrets),
                operation=operation,
            ) from e
        except requests.exceptions.RequestException as e:
            raise TransientError(
                redact_secrets(f"Controller request failed: {e}", secrets),
                operation=operation,
            ) from e

        self._raise_for_status(response, operation, ambiguous)
        return response

    def _raise_for_status(self, response: requests.Response, operation: str, ambiguous: bool) -> None:
        status = response.status_code
        if status < 400:
            return
        context = {"operation": operation, "http_status": status}
        if status == 401:
            raise CredentialError(
                f"Controller refused the access token for {operation} (HTTP 401)",
                token_rejected=True,
                **context,
            )
        if status == 403:
            raise CredentialError(f"Controller refused {operation} (HTTP 403)", **context)
        if status == 404:
            raise NotFoundError(f"Controller resource not found during {operation}", **context)
        if status == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitedError(
                f"Controller rate limited {operation}", retry_after=retry_after, **context
            )
        if status == 504 and ambiguous:
            raise AmbiguousOutcomeError(
                f"Controller gateway timed out during {operation}; outcome unknown", **context
            )
        if status >= 500:
            raise TransientError(f"Controller error during {operation} (HTTP {status})", **context)
        raise ValidationError(f"Controller rejected {operation} (HTTP {status})", **context)

    def _unwrap(
        self,
        response: requests.Response,
        operation: str,
        secrets: Iterable[Any],
        resource_type: Optional[str] = None,
    ) -> Any:
        """Check the ``{errorCode, msg, result}`` envelope and return ``result``."""
        try:
            payload = response.json()
        except ValueError as e:
            raise TransientError(
                f"Controller returned a non-JSON response to {operation}",
                operation=operation,
            ) from e

        code = payload.get("errorCode") if isinstance(payload, dict) else None
        if code == CONTROLLER_SUCCESS_CODE:
            return payload.get("result")

        msg = redact_secrets(str(payload.get("msg") or "") if isinstance(payload, dict) else "", secrets)
        context = {"operation": operation, "controller_code": code, "controller_msg": msg}

        if code in CONTROLLER_CREDENTIAL_ERROR_CODES:
            raise CredentialError(f"Invalid controller credentials: {msg}", **context)
        if code in CONTROLLER_TOKEN_REJECTED_CODES:
            raise CredentialError(
                f"Controller rejected the access token: {msg}", token_rejected=True, **context
            )
        if code in CONTROLLER_NOT_FOUND_CODES:
            raise NotFoundError(
                f"Controller resource not found: {msg}", resource_type=resource_type, **context
            )
        if code in CONTROLLER_GENERAL_ERROR_CODES:
            raise TransientError(f"Controller general error: {msg}", **context)
        if code in CONTROLLER_VALIDATION_ERROR_CODES:
            raise ValidationError(f"Controller rejected {operation} parameters: {msg}", **context)
        raise ValidationError(
            f"Controller answered {operation} with unknown code {code}: {msg}", **context
        )
