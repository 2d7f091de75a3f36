"""Adapters for external systems."""

from .controller_client import ControllerClient, build_voucher_group_payload, parse_retry_after

__all__ = ["ControllerClient", "build_voucher_group_payload", "parse_retry_after"]
