# core/supabase_client.py
import logging
from typing import Any, Dict, List, Optional
from config.settings import settings
from core.http import ClientFactory, bearer, default_client_factory, raise_for_provider
from util.enums import ErrorMessage
from util.errors import AuthenticationError

logger = logging.getLogger(__name__)

PROVIDER = "supabase"


class SupabaseClient:
    """
    Thin HTTPS client for the three Supabase surfaces this service touches:
    Auth (who is calling), PostgREST (token table) and Storage (public media).
    Credentials are read at first use.
    """

    def __init__(self, http: Optional[ClientFactory] = None) -> None:
        self._http = http or default_client_factory

    @staticmethod
    def _base() -> str:
        return settings.require("SUPABASE_URL").rstrip("/")

    @staticmethod
    def _service_headers() -> Dict[str, str]:
        key = settings.require("SUPABASE_SERVICE_ROLE_KEY")
        return {"apikey": key, **bearer(key)}

    # ---------------- Auth ----------------

    async def get_user_id(self, access_token: str) -> str:
        if not access_token:
            raise AuthenticationError(ErrorMessage.NOT_AUTHENTICATED.value.message)
        headers = {
            "apikey": settings.require("SUPABASE_SERVICE_ROLE_KEY"),
            **bearer(access_token),
        }
        async with self._http() as client:
            res = await client.get(f"{self._base()}/auth/v1/user", headers=headers)
        if res.status_code in (401, 403):
            logger.warning("supabase.auth.rejected status=%d", res.status_code)
            raise AuthenticationError(ErrorMessage.NOT_AUTHENTICATED.value.message)
        raise_for_provider(res, PROVIDER, "Failed to resolve user")
        user_id = (res.json() or {}).get("id")
        if not user_id:
            raise AuthenticationError(ErrorMessage.NOT_AUTHENTICATED.value.message)
        return str(user_id)

    # ---------------- PostgREST ----------------

    async def select(self, table: str, filters: Dict[str, str]) -> List[Dict[str, Any]]:
        params = {"select": "*", **{k: f"eq.{v}" for k, v in filters.items()}}
        async with self._http() as client:
            res = await client.get(
                f"{self._base()}/rest/v1/{table}",
                params=params,
                headers=self._service_headers(),
            )
        raise_for_provider(res, PROVIDER, f"Failed to read {table}")
        rows = res.json()
        return rows if isinstance(rows, list) else []

    async def upsert(self, table: str, row: Dict[str, Any], on_conflict: str) -> None:
        headers = {
            **self._service_headers(),
            "Prefer": "resolution=merge-duplicates,return=minimal",
        }
        async with self._http() as client:
            res = await client.post(
                f"{self._base()}/rest/v1/{table}",
                params={"on_conflict": on_conflict},
                headers=headers,
                json=row,
            )
        raise_for_provider(res, PROVIDER, f"Failed to write {table}")

    async def update(
        self, table: str, filters: Dict[str, str], values: Dict[str, Any]
    ) -> None:
        params = {k: f"eq.{v}" for k, v in filters.items()}
        headers = {**self._service_headers(), "Prefer": "return=minimal"}
        async with self._http() as client:
            res = await client.patch(
                f"{self._base()}/rest/v1/{table}",
                params=params,
                headers=headers,
                json=values,
            )
        raise_for_provider(res, PROVIDER, f"Failed to update {table}")

    async def delete(self, table: str, filters: Dict[str, str]) -> None:
        params = {k: f"eq.{v}" for k, v in filters.items()}
        async with self._http() as client:
            res = await client.delete(
                f"{self._base()}/rest/v1/{table}",
                params=params,
                headers=self._service_headers(),
            )
        raise_for_provider(res, PROVIDER, f"Failed to delete from {table}")

    # ---------------- Storage ----------------

    async def list_buckets(self) -> List[Dict[str, Any]]:
        async with self._http() as client:
            res = await client.get(
                f"{self._base()}/storage/v1/bucket", headers=self._service_headers()
            )
        raise_for_provider(res, PROVIDER, "Failed to list buckets")
        data = res.json()
        return data if isinstance(data, list) else []

    async def create_bucket(self, name: str, *, public: bool, file_size_limit: int) -> None:
        payload = {
            "id": name,
            "name": name,
            "public": public,
            "file_size_limit": file_size_limit,
        }
        async with self._http() as client:
            res = await client.post(
                f"{self._base()}/storage/v1/bucket",
                headers=self._service_headers(),
                json=payload,
            )
        raise_for_provider(res, PROVIDER, f"Failed to create bucket {name}")

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        headers = {
            **self._service_headers(),
            "Content-Type": content_type,
            "x-upsert": "true",
        }
        async with self._http() as client:
            res = await client.post(
                f"{self._base()}/storage/v1/object/{bucket}/{path}",
                headers=headers,
                content=data,
            )
        raise_for_provider(res, PROVIDER, "Supabase upload error")

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self._base()}/storage/v1/object/public/{bucket}/{path}"
