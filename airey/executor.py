"""VaultExecutor implementations — the on-chain side of an automatic execution.

``SimulatedVaultExecutor`` (SIMULATION_MODE, the default) logs and reports a
dry-run success. ``HttpVaultExecutor`` hands the strategy switch to a vault
keeper service that signs and submits the transaction; keys never enter
this process.
"""
from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Protocol

import httpx

from airey.config import (
    SIMULATION_MODE,
    VAULT_EXECUTOR_API_KEY,
    VAULT_EXECUTOR_MAX_RETRIES,
    VAULT_EXECUTOR_TIMEOUT,
    VAULT_EXECUTOR_URL,
)
from airey.models import ExecutionReceipt

logger = logging.getLogger(__name__)


class VaultExecutionError(RuntimeError):
    """The vault keeper refused or failed the strategy switch."""


class VaultExecutor(Protocol):
    def execute(self, vault: str, strategy: str, params: dict[str, Any]) -> ExecutionReceipt: ...


class SimulatedVaultExecutor:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    def execute(self, vault: str, strategy: str, params: dict[str, Any]) -> ExecutionReceipt:
        self.calls.append({"vault": vault, "strategy": strategy, "params": dict(params), "ts": time.time()})
        logger.info("[SIM] vault %s → strategy %s", vault, strategy)
        return ExecutionReceipt(ok=True, tx_hash=f"sim-{uuid.uuid4().hex[:16]}", simulated=True)


class HttpVaultExecutor:
    """POST ``{vault, strategy, params}`` to ``{base_url}/execute``.

    Transport errors and 5xx responses are retried with linear backoff;
    4xx responses and ``{"ok": false}`` bodies fail immediately.
    """

    def __init__(
        self,
        base_url: str = VAULT_EXECUTOR_URL,
        api_key: str = VAULT_EXECUTOR_API_KEY,
        timeout: float = VAULT_EXECUTOR_TIMEOUT,
        max_retries: int = VAULT_EXECUTOR_MAX_RETRIES,
        backoff_seconds: float = 1.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("HttpVaultExecutor requires a base_url (VAULT_EXECUTOR_URL)")
        self.base_url = base_url.rstrip("/")
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds
        self._client = client or httpx.Client(timeout=timeout, headers=self._headers(api_key))

    @staticmethod
    def _headers(api_key: str) -> dict[str, str]:
        h: dict[str, str] = {"Content-Type": "application/json"}
        if api_key:
            h["x-api-key"] = api_key
        return h

    def execute(self, vault: str, strategy: str, params: dict[str, Any]) -> ExecutionReceipt:
        payload = {"vault": vault, "strategy": strategy, "params": params}
        for attempt in range(1, self.max_retries + 1):
            try:
                resp = self._client.post(f"{self.base_url}/execute", json=payload)
                if resp.status_code < 500:
                    break
                logger.warning("Vault executor attempt %d/%d: HTTP %d",
                               attempt, self.max_retries, resp.status_code)
            except httpx.TransportError as e:
                logger.warning("Vault executor attempt %d/%d failed: %s", attempt, self.max_retries, e)
                if attempt == self.max_retries:
                    raise VaultExecutionError(f"vault executor unreachable: {e}") from e
            if attempt < self.max_retries:
                time.sleep(self.backoff_seconds * attempt)
        else:
            raise VaultExecutionError(f"vault executor returned HTTP {resp.status_code}")

        if resp.status_code >= 400:
            raise VaultExecutionError(f"vault executor rejected request: HTTP {resp.status_code} {resp.text[:200]}")

        body = resp.json()
        return ExecutionReceipt(
            ok=bool(body.get("ok", False)),
            tx_hash=body.get("tx_hash"),
            error=body.get("error"),
            details={k: v for k, v in body.items() if k not in ("ok", "tx_hash", "error")},
        )

    def close(self) -> None:
        self._client.close()


def build_executor() -> VaultExecutor:
    """Pick the executor for this process from configuration."""
    if SIMULATION_MODE or not VAULT_EXECUTOR_URL:
        if not SIMULATION_MODE:
            logger.warning("SIMULATION_MODE is off but VAULT_EXECUTOR_URL is empty; simulating")
        return SimulatedVaultExecutor()
    return HttpVaultExecutor(
        base_url=VAULT_EXECUTOR_URL,
        api_key=VAULT_EXECUTOR_API_KEY,
        timeout=VAULT_EXECUTOR_TIMEOUT,
        max_retries=VAULT_EXECUTOR_MAX_RETRIES,
    )
