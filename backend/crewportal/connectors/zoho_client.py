import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from crewportal.services.normalizer import extract_created_id, extract_records, has_more_records

log = logging.getLogger(__name__)

TOKEN_LIFETIME_SECONDS = 3500  # Zoho access tokens last one hour
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class ZohoAPIError(Exception):
    """A Zoho call did not produce a confirmed success."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ZohoAuthError(ZohoAPIError):
    """No usable access token could be obtained."""


class ZohoClient:
    """
    Zoho CRM v2 client.

    Constructed once at application startup and passed to the components that
    talk to Zoho. Holds the access token and its expiry; `get_valid_token()`
    refreshes it through the custom token URL (a Deluge function) when
    configured, otherwise through the standard OAuth refresh flow.
    """

    def __init__(
        self,
        api_domain: str,
        accounts_url: str = "https://accounts.zoho.com",
        access_token_url: str = "",
        client_id: str = "",
        client_secret: str = "",
        refresh_token: str = "",
        timeout: float = 10.0,
        page_size: int = 200,
        modules: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_domain = api_domain.rstrip("/")
        self.accounts_url = accounts_url.rstrip("/")
        self.access_token_url = access_token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.page_size = page_size
        self.modules = {
            "timesheets": "Time_Entries",
            "junctions": "Timesheet_Painters",
            "projects": "Deals",
            "portal_users": "Portal_Users",
            "connections": "Portal_Us_X_Job_Ticke",
            "painters": "Painters",
        }
        self.modules.update(modules or {})

        self.client = httpx.AsyncClient(
            base_url=self.api_domain,
            timeout=timeout,
            transport=transport,
        )
        self._access_token: Optional[str] = None
        self._token_expiry: float = 0.0

        log.info(f"Zoho client initialized with API domain: {self.api_domain}")

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ZohoClient":
        return cls(
            api_domain=settings.zoho_api_domain,
            accounts_url=settings.zoho_accounts_url,
            access_token_url=settings.zoho_access_token_url,
            client_id=settings.zoho_client_id,
            client_secret=settings.zoho_client_secret,
            refresh_token=settings.zoho_refresh_token,
            timeout=settings.zoho_timeout_seconds,
            page_size=settings.zoho_page_size,
            modules={
                "timesheets": settings.zoho_timesheet_module,
                "junctions": settings.zoho_junction_module,
                "projects": settings.zoho_projects_module,
                "portal_users": settings.zoho_portal_users_module,
                "connections": settings.zoho_connections_module,
                "painters": settings.zoho_painters_module,
            },
            transport=transport,
        )

    # ------------------------------------------------------------------ auth

    async def get_valid_token(self) -> str:
        """Return a cached access token, refreshing it when missing or expired."""
        if self._access_token and time.time() < self._token_expiry:
            return self._access_token

        if self.access_token_url:
            token = await self._token_from_function()
            if token:
                self._store_token(token, TOKEN_LIFETIME_SECONDS)
                return token
            log.warning("Zoho token URL returned no access_token, trying OAuth refresh")

        if self.client_id and self.client_secret and self.refresh_token:
            token, expires_in = await self._token_from_refresh()
            self._store_token(token, expires_in)
            return token

        raise ZohoAuthError("Failed to retrieve Zoho access token: missing credentials or token URL")

    def invalidate_token(self):
        self._access_token = None
        self._token_expiry = 0.0

    def _store_token(self, token: str, expires_in: float):
        self._access_token = token
        self._token_expiry = time.time() + max(0.0, expires_in - TOKEN_EXPIRY_MARGIN_SECONDS)
        log.debug(f"Zoho access token refreshed, valid for ~{int(expires_in)}s")

    async def _token_from_function(self) -> Optional[str]:
        try:
            response = await self.client.get(self.access_token_url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ZohoAuthError(f"Zoho token URL request failed: {e}") from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token and isinstance(data, dict):
            token = ((data.get("crmAPIResponse") or {}).get("body") or {}).get("access_token")
        if isinstance(token, str) and token.startswith("Zoho-oauthtoken "):
            token = token[len("Zoho-oauthtoken "):]
        return token or None

    async def _token_from_refresh(self):
        params = {
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "refresh_token",
        }
        try:
            response = await self.client.post(f"{self.accounts_url}/oauth/v2/token", params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ZohoAuthError(f"Zoho OAuth refresh failed: {e}") from e

        token = data.get("access_token")
        if not token:
            raise ZohoAuthError(f"Zoho OAuth refresh returned no access_token: {data.get('error', data)}")
        expires_in = data.get("expires_in_sec") or data.get("expires_in") or TOKEN_LIFETIME_SECONDS
        return token, float(expires_in)

    # -------------------------------------------------------------- requests

    async def _request(self, method: str, path: str, _retry_auth: bool = True, **kwargs) -> Any:
        """
        Authenticated request against the CRM API.

        Returns parsed JSON, or None for 204. Any non-success, timeout or
        transport error raises ZohoAPIError.
        """
        if not path.startswith("/"):
            path = f"/{path}"
        token = await self.get_valid_token()
        headers = {"Authorization": f"Zoho-oauthtoken {token}"}

        try:
            log.trace(f"Zoho API {method} {path}")
            response = await self.client.request(method, path, headers=headers, **kwargs)
            log.trace(f"Zoho API response: {response.status_code}")
        except httpx.TimeoutException as e:
            raise ZohoAPIError(f"Zoho request timed out: {method} {path}") from e
        except httpx.RequestError as e:
            raise ZohoAPIError(f"Zoho request error for {method} {path}: {e}") from e

        status = response.status_code
        if status == 401 and _retry_auth:
            log.info("Zoho rejected access token, refreshing once")
            self.invalidate_token()
            return await self._request(method, path, _retry_auth=False, **kwargs)
        if status == 204:
            return None
        if status >= 400:
            body = response.text[:500]
            if status == 401:
                message = f"Zoho authentication failed for {path}"
            elif status == 403:
                message = f"Zoho permission denied for {path}: {body}"
            elif status == 404:
                message = f"Zoho resource not found: {path}"
            elif status == 429:
                message = f"Zoho rate limit reached for {path}"
            else:
                message = f"Zoho HTTP {status} error for {method} {path}: {body}"
            log.error(message)
            raise ZohoAPIError(message, status_code=status)

        try:
            return response.json()
        except ValueError as e:
            raise ZohoAPIError(f"Zoho returned non-JSON body for {path}: {response.text[:200]}") from e

    async def _fetch_all(self, module_key: str, fields: Optional[str] = None) -> List[Dict[str, Any]]:
        """All records of a module, following `info.more_records` pagination."""
        module = self.modules[module_key]
        records: List[Dict[str, Any]] = []
        page = 1
        while True:
            params = {"page": page, "per_page": self.page_size}
            if fields:
                params["fields"] = fields
            payload = await self._request("GET", f"/crm/v2/{module}", params=params)
            batch = extract_records(payload, module)
            records.extend(batch)
            if not batch or not has_more_records(payload):
                break
            page += 1
        log.debug(f"Fetched {len(records)} {module} records in {page} page(s)")
        return records

    async def get_deals(self) -> List[Dict[str, Any]]:
        return await self._fetch_all(
            "projects",
            fields="id,Deal_Name,Account_Name,Stage,Closing_Date,Project_Start_Date,Shipping_Street,Owner,"
                   "Supplier_Color,Trim_Coil_Color,Shingle_Accessory_Color,Gutter_Types,Siding_Style",
        )

    async def get_portal_users(self) -> List[Dict[str, Any]]:
        return await self._fetch_all("portal_users", fields="id,Email,Name")

    async def get_user_job_connections(self) -> List[Dict[str, Any]]:
        return await self._fetch_all("connections", fields="Contractors,Projects,Name")

    async def get_painters(self) -> List[Dict[str, Any]]:
        return await self._fetch_all("painters", fields="id,Name,Email,Phone,Active")

    async def create_record(self, module_key: str, data: Dict[str, Any]) -> str:
        """Insert one record and return its Zoho id."""
        module = self.modules[module_key]
        payload = await self._request("POST", f"/crm/v2/{module}", json={"data": [data]})
        try:
            return extract_created_id(payload)
        except ValueError as e:
            raise ZohoAPIError(f"{module} insert failed: {e}") from e

    async def create_timesheet(self, data: Dict[str, Any]) -> str:
        return await self.create_record("timesheets", data)

    async def create_junction(self, data: Dict[str, Any]) -> str:
        return await self.create_record("junctions", data)

    async def aclose(self):
        await self.client.aclose()
