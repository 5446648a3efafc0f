"""Canva Connect integration - OAuth, brand templates, autofill and export jobs."""

import asyncio
import base64
import json
import logging
import time
from typing import Optional, Dict, Any, List, Callable, Awaitable
from urllib.parse import urlencode

import httpx

from src.core.config import get_settings

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 1.5
POLL_TIMEOUT_SECONDS = 90.0


class CanvaError(Exception):
    """Error from the Canva integration, carrying a machine-readable code."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Any] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


async def poll_job(
    fetch: Callable[[], Awaitable[Dict[str, Any]]],
    interval: float = POLL_INTERVAL_SECONDS,
    timeout: float = POLL_TIMEOUT_SECONDS
) -> Dict[str, Any]:
    """
    Re-fetch an async job until it leaves 'in_progress'.

    Args:
        fetch: Coroutine factory returning the job object
        interval: Seconds between polls
        timeout: Seconds before giving up

    Returns:
        The final job object (status 'success' or 'failed')

    Raises:
        CanvaError: code 'timeout' when the job is still running at the deadline
    """
    deadline = time.monotonic() + timeout
    while True:
        job = await fetch()
        status = (job or {}).get("status")
        if status != "in_progress":
            return job
        if time.monotonic() >= deadline:
            raise CanvaError(
                "timeout",
                f"Canva job did not finish within {int(timeout)}s",
                status_code=504,
                details={"job_id": (job or {}).get("id")},
            )
        await asyncio.sleep(interval)


class CanvaClient:
    """
    Async client for the Canva Connect REST API.

    Every resource call takes the caller's access token; token storage and
    refresh live in the Canva service.
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._settings = None
        self._http = http_client

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    def _require(self, *names: str) -> None:
        missing = [name for name in names if not getattr(self.settings, name)]
        if missing:
            raise CanvaError(
                "missing_config",
                f"Canva is not configured: missing {', '.join(missing)}",
                status_code=500,
            )

    def is_available(self) -> bool:
        """Check if Canva OAuth is configured."""
        return bool(self.settings.CANVA_CLIENT_ID and self.settings.CANVA_CLIENT_SECRET)

    def _api(self, path: str) -> str:
        return f"{self.settings.CANVA_API_URL.rstrip('/')}{path}"

    async def _request(
        self,
        method: str,
        url: str,
        access_token: Optional[str] = None,
        **kwargs: Any
    ) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        try:
            if self._http is not None:
                response = await self._http.request(method, url, headers=headers, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=60.0) as client:
                    response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Canva request failed: {method} {url}: {e}")
            raise CanvaError("api_error", f"Canva request failed: {e}", status_code=500) from e

        if response.status_code >= 400:
            try:
                details = response.json()
            except ValueError:
                details = response.text
            logger.error(f"Canva API error {response.status_code}: {method} {url}: {details}")
            raise CanvaError(
                "api_error",
                f"Canva API returned {response.status_code}",
                status_code=400 if response.status_code < 500 else 500,
                details=details,
            )
        return response

    async def _json(self, method: str, path: str, access_token: str, **kwargs: Any) -> Dict[str, Any]:
        response = await self._request(method, self._api(path), access_token, **kwargs)
        return response.json() if response.content else {}

    # ===========================================
    # OAuth
    # ===========================================

    def build_authorize_url(self, state: str, scopes: Optional[List[str]] = None) -> str:
        """URL the browser is sent to for the Canva consent screen."""
        self._require("CANVA_CLIENT_ID", "CANVA_REDIRECT_URI")
        params = {
            "client_id": self.settings.CANVA_CLIENT_ID,
            "redirect_uri": self.settings.CANVA_REDIRECT_URI,
            "response_type": "code",
            "state": state,
        }
        scopes = scopes if scopes is not None else self.settings.CANVA_SCOPES
        if scopes:
            params["scope"] = " ".join(scopes)
        return f"{self.settings.CANVA_AUTH_URL}?{urlencode(params)}"

    async def _token_request(self, form: Dict[str, str]) -> Dict[str, Any]:
        self._require("CANVA_CLIENT_ID", "CANVA_CLIENT_SECRET")
        form.update({
            "client_id": self.settings.CANVA_CLIENT_ID,
            "client_secret": self.settings.CANVA_CLIENT_SECRET,
        })
        response = await self._request(
            "POST",
            self._api("/v1/oauth/token"),
            data=form,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        return response.json()

    async def exchange_code_for_token(self, code: str) -> Dict[str, Any]:
        """Trade an authorization code for access and refresh tokens."""
        self._require("CANVA_REDIRECT_URI")
        return await self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.settings.CANVA_REDIRECT_URI,
        })

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """Obtain a new access token from a refresh token."""
        return await self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })

    # ===========================================
    # Brand Templates
    # ===========================================

    async def list_brand_templates(self, access_token: str, continuation: Optional[str] = None) -> Dict[str, Any]:
        params = {"continuation": continuation} if continuation else None
        return await self._json("GET", "/v1/brand-templates", access_token, params=params)

    async def get_brand_template_dataset(self, access_token: str, brand_template_id: str) -> Dict[str, Any]:
        """Named fillable fields of a brand template, as {key: {type: ...}}."""
        data = await self._json("GET", f"/v1/brand-templates/{brand_template_id}/dataset", access_token)
        return data.get("dataset") or {}

    # ===========================================
    # Autofill and Export Jobs
    # ===========================================

    async def create_autofill_job(
        self,
        access_token: str,
        brand_template_id: str,
        data: Dict[str, Any],
        title: Optional[str] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"brand_template_id": brand_template_id, "data": data}
        if title:
            body["title"] = title[:255]
        result = await self._json("POST", "/v1/autofills", access_token, json=body)
        return result.get("job") or {}

    async def get_autofill_job(self, access_token: str, job_id: str) -> Dict[str, Any]:
        result = await self._json("GET", f"/v1/autofills/{job_id}", access_token)
        return result.get("job") or {}

    async def create_export_job(self, access_token: str, design_id: str, file_type: str = "pdf") -> Dict[str, Any]:
        body = {"design_id": design_id, "format": {"type": file_type}}
        result = await self._json("POST", "/v1/exports", access_token, json=body)
        return result.get("job") or {}

    async def get_export_job(self, access_token: str, job_id: str) -> Dict[str, Any]:
        result = await self._json("GET", f"/v1/exports/{job_id}", access_token)
        return result.get("job") or {}

    async def download(self, url: str) -> bytes:
        """Fetch an exported file from its temporary URL."""
        response = await self._request("GET", url)
        return response.content

    # ===========================================
    # Asset Uploads
    # ===========================================

    async def create_url_asset_upload_job(self, access_token: str, url: str, name: str) -> Dict[str, Any]:
        body = {"name": name[:50], "url": url}
        result = await self._json("POST", "/v1/url-asset-uploads", access_token, json=body)
        return result.get("job") or {}

    async def get_url_asset_upload_job(self, access_token: str, job_id: str) -> Dict[str, Any]:
        result = await self._json("GET", f"/v1/url-asset-uploads/{job_id}", access_token)
        return result.get("job") or {}

    async def create_asset_upload_job(self, access_token: str, data: bytes, name: str) -> Dict[str, Any]:
        """Upload raw bytes; the asset name travels base64-encoded in a header."""
        metadata = {"name_base64": base64.b64encode(name[:50].encode("utf-8")).decode("ascii")}
        result = await self._json(
            "POST",
            "/v1/asset-uploads",
            access_token,
            content=data,
            headers={
                "Content-Type": "application/octet-stream",
                "Asset-Upload-Metadata": json.dumps(metadata),
            },
        )
        return result.get("job") or {}

    async def get_asset_upload_job(self, access_token: str, job_id: str) -> Dict[str, Any]:
        result = await self._json("GET", f"/v1/asset-uploads/{job_id}", access_token)
        return result.get("job") or {}


# Singleton instance
canva_client = CanvaClient()
