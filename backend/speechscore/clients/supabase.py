from __future__ import annotations

from typing import Any

import httpx


class SupabaseError(Exception):
    # Not a frozen dataclass: contextlib assigns __traceback__ when the error
    # leaves a @contextmanager such as start_span.
    def __init__(
        self, message: str, status_code: int | None = None, body: str | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        return self.message


class SupabaseClient:
    def __init__(
        self,
        *,
        url: str,
        service_role_key: str,
        timeout: float = 10.0,
        retries: int = 2,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._retries = retries
        self._client = httpx.AsyncClient(
            base_url=url,
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": service_role_key,
                "Authorization": f"Bearer {service_role_key}",
                "Accept": "application/json",
            },
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        last_error: Exception | None = None
        for attempt in range(self._retries + 1):
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.RequestError as exc:
                last_error = exc
            else:
                if response.status_code >= 500:
                    last_error = SupabaseError(
                        f"Supabase error {response.status_code}",
                        status_code=response.status_code,
                        body=response.text,
                    )
                else:
                    return response
            if attempt < self._retries:
                continue
        raise SupabaseError("Supabase request failed") from last_error

    async def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._request(method, path, **kwargs)
        if not response.is_success:
            raise SupabaseError(
                f"Supabase error {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.text:
            return None
        return response.json()

    async def select(self, table: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        query = {"select": "*", **(params or {})}
        rows = await self.request_json("GET", f"/rest/v1/{table}", params=query)
        return rows or []

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        created = await self.request_json(
            "POST",
            f"/rest/v1/{table}",
            json=rows,
            headers={"Prefer": "return=representation"},
        )
        return created or []

    async def update(
        self, table: str, params: dict[str, Any], payload: dict[str, Any]
    ) -> list[dict[str, Any]]:
        updated = await self.request_json(
            "PATCH",
            f"/rest/v1/{table}",
            params=params,
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        return updated or []

    async def upsert(self, table: str, rows: list[dict[str, Any]], *, on_conflict: str) -> None:
        await self.request_json(
            "POST",
            f"/rest/v1/{table}",
            params={"on_conflict": on_conflict},
            json=rows,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    async def delete(self, table: str, params: dict[str, Any]) -> None:
        await self.request_json("DELETE", f"/rest/v1/{table}", params=params)

    async def rpc(self, function: str, payload: dict[str, Any]) -> Any:
        return await self.request_json("POST", f"/rest/v1/rpc/{function}", json=payload)


def in_filter(values: list[Any]) -> str:
    return "in.(" + ",".join(str(value) for value in values) + ")"


def eq_filter(value: Any) -> str:
    return f"eq.{value}"
