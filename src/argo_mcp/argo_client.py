"""HTTP client for the Argo Server REST API."""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from typing import Any, Dict, Optional

import httpx

from .config import Settings
from .errors import ArgoAPIError, ArgoTimeoutError, AuthenticationError

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


class ArgoClient:
    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = settings.argo_server_url.rstrip("/")
        self.timeout_seconds = settings.api_timeout_seconds
        self.max_attempts = max(settings.api_retry_attempts, 1)
        self.retry_delay_seconds = settings.api_retry_delay_seconds
        self.retry_max_delay_seconds = settings.api_retry_max_delay_seconds

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"{settings.service_name}/1.0.0",
        }
        if settings.argo_token:
            # Argo expects the full value, e.g. "Bearer <token>".
            headers["Authorization"] = settings.argo_token

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            verify=not settings.argo_insecure_skip_verify,
            headers=headers,
            transport=transport,
        )

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        method = method.upper()
        attempt = 0
        while True:
            attempt += 1
            request_id = uuid.uuid4().hex
            logger.debug("Outgoing request %s %s request_id=%s", method, path, request_id)
            try:
                response = await self._client.request(
                    method,
                    path,
                    params=params or None,
                    json=json,
                    headers={"X-Request-ID": request_id},
                )
            except httpx.TimeoutException as exc:
                error: Exception = ArgoTimeoutError(
                    f"{method} {path}", self.timeout_seconds, {"request_id": request_id}
                )
                error.__cause__ = exc
                retryable = True
            except httpx.TransportError as exc:
                error = ArgoAPIError(
                    f"Connection error: {exc}", 0, None, {"endpoint": path, "method": method}
                )
                error.__cause__ = exc
                retryable = True
            else:
                logger.debug(
                    "Response received status=%s request_id=%s", response.status_code, request_id
                )
                if response.status_code < 400:
                    return self._decode(response)
                error = self._api_error(response, path)
                retryable = response.status_code in RETRYABLE_STATUSES

            if not retryable or attempt >= self.max_attempts:
                raise error

            delay = self._backoff(attempt)
            logger.warning(
                "Argo request failed (attempt %s/%s). Retrying in %.2fs. %s %s: %s",
                attempt,
                self.max_attempts,
                delay,
                method,
                path,
                error,
            )
            await asyncio.sleep(delay)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, params=params, json=json)

    async def put(self, path: str, json: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("PUT", path, params=params, json=json)

    async def patch(self, path: str, json: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("PATCH", path, params=params, json=json)

    async def delete(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("DELETE", path, params=params)

    async def health_check(self) -> Dict[str, Any]:
        try:
            response = await self.get("/api/v1/version")
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"healthy": False, "details": str(exc)}
        version = response.get("version") if isinstance(response, dict) else None
        return {"healthy": True, "version": version, "details": response}

    async def aclose(self) -> None:
        await self._client.aclose()

    def _decode(self, response: httpx.Response) -> Any:
        if not response.content:
            return {"status": "ok"}
        try:
            return response.json()
        except ValueError:
            return response.text

    def _api_error(self, response: httpx.Response, path: str) -> Exception:
        status = response.status_code
        data = self._decode(response)
        if status == 401:
            return AuthenticationError("Invalid or expired token", {"endpoint": path})
        if status == 403:
            return AuthenticationError("Insufficient permissions", {"endpoint": path})
        if status == 404:
            return ArgoAPIError(f"Resource not found: {path}", status, data)
        if status == 429:
            return ArgoAPIError(
                "Rate limit exceeded",
                status,
                data,
                {"retry_after": response.headers.get("retry-after")},
            )
        message = None
        if isinstance(data, dict):
            message = data.get("message")
        return ArgoAPIError(
            message or response.reason_phrase or "API request failed",
            status,
            data,
            {"endpoint": path},
        )

    def _backoff(self, attempt: int) -> float:
        delay = min(self.retry_delay_seconds * 2 ** (attempt - 1), self.retry_max_delay_seconds)
        jitter = delay * 0.1 * (random.random() * 2 - 1)
        return max(0.0, delay + jitter)
