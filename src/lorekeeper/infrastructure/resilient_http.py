from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Mapping

import httpx


_RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}

_logger = logging.getLogger(__name__)


class CircuitOpenError(RuntimeError):
    pass


def _is_truthy(value: str | None, *, default: str) -> bool:
    normalized = str(value if value is not None else default).strip().lower()
    return normalized in {"1", "true", "yes"}


@dataclass(frozen=True)
class HttpPolicy:
    timeout_seconds: float = 2.0
    retries: int = 1
    backoff_seconds: float = 0.1
    circuit_enabled: bool = True
    failure_threshold: int = 3
    reset_seconds: float = 120.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "HttpPolicy":
        env = os.environ if environ is None else environ
        return cls(
            timeout_seconds=float(env.get("LOREKEEPER_HTTP_TIMEOUT_S", "2")),
            retries=max(0, int(env.get("LOREKEEPER_HTTP_RETRIES", "1"))),
            backoff_seconds=max(0.0, float(env.get("LOREKEEPER_HTTP_BACKOFF_S", "0.1"))),
            circuit_enabled=_is_truthy(env.get("LOREKEEPER_HTTP_CIRCUIT_BREAKER_ENABLED"), default="1"),
            failure_threshold=max(1, int(env.get("LOREKEEPER_HTTP_CIRCUIT_FAILURE_THRESHOLD", "3"))),
            reset_seconds=max(0.0, float(env.get("LOREKEEPER_HTTP_CIRCUIT_RESET_SECONDS", "120"))),
        )


@dataclass
class _CircuitState:
    failures: int = 0
    opened_until_epoch: float = 0.0


_CIRCUIT_STATES: dict[str, _CircuitState] = {}


def reset_circuit_breakers() -> None:
    _CIRCUIT_STATES.clear()


def circuit_is_open(base_url: str) -> bool:
    state = _CIRCUIT_STATES.get(str(base_url))
    return state is not None and state.opened_until_epoch > time.time()


def _circuit_key(client: httpx.Client) -> str:
    return str(getattr(client, "base_url", "unknown") or "unknown")


def _guard(key: str, policy: HttpPolicy) -> None:
    if not policy.circuit_enabled:
        return
    state = _CIRCUIT_STATES.get(key)
    if state is None:
        return
    if state.opened_until_epoch > time.time():
        raise CircuitOpenError(f"HTTP circuit open for {key} until {int(state.opened_until_epoch)}")
    if state.opened_until_epoch > 0:
        # reset window elapsed; let one probe through
        _CIRCUIT_STATES[key] = _CircuitState()


def _record(key: str, policy: HttpPolicy, *, ok: bool) -> None:
    if not policy.circuit_enabled:
        return
    if ok:
        _CIRCUIT_STATES.pop(key, None)
        return
    state = _CIRCUIT_STATES.setdefault(key, _CircuitState())
    state.failures += 1
    if state.failures >= policy.failure_threshold and state.opened_until_epoch <= time.time():
        state.opened_until_epoch = time.time() + policy.reset_seconds
        _logger.warning(
            "HTTP circuit opened",
            extra={"base_url": key, "failures": state.failures, "reset_seconds": policy.reset_seconds},
        )


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS_CODES
    return False


def get_json_with_retry(
    client: httpx.Client,
    path: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    policy: HttpPolicy | None = None,
) -> dict[str, Any]:
    """GET ``path`` and decode a JSON object, retrying transient failures.

    Timeouts, network errors and retryable statuses back off exponentially
    and count towards the per-base-url circuit breaker. A JSON array body is
    wrapped as ``{"results": [...]}``.
    """
    policy = policy or HttpPolicy.from_env()
    key = _circuit_key(client)
    attempts = policy.retries + 1

    for attempt_index in range(attempts):
        try:
            _guard(key, policy)
            response = client.get(path, params=params, headers=headers)
            if response.status_code in _RETRYABLE_STATUS_CODES:
                raise httpx.HTTPStatusError(
                    f"Retryable HTTP status: {response.status_code}",
                    request=response.request,
                    response=response,
                )
            response.raise_for_status()
            payload = response.json()
        except CircuitOpenError:
            raise
        except Exception as exc:
            retryable = _is_retryable(exc)
            if retryable:
                _record(key, policy, ok=False)
            if not retryable or attempt_index >= attempts - 1:
                raise
            delay = policy.backoff_seconds * (2 ** attempt_index)
            _logger.info(
                "Retrying HTTP request",
                extra={"path": path, "attempt": attempt_index + 1, "delay_seconds": delay, "error": str(exc)},
            )
            if delay > 0:
                time.sleep(delay)
            continue
        _record(key, policy, ok=True)
        return payload if isinstance(payload, dict) else {"results": payload}

    return {}
