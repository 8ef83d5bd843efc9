"""Remote client profile service.

A secondary, cross-device copy of each client's contact details lives in a
PostgREST-style table keyed by the folder slug (``folder_path`` column).
The workspace layer only needs two calls: fetch every profile and upsert
one.  Upserts are keyed by slug, so retrying one is always safe.

When the table does not exist the service answers with
``MISSING_RELATION_CODE``; callers treat that as "profiles unavailable" and
keep working on the local filesystem alone.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx
from loguru import logger

from dossier.workspace.models.profile import ClientProfile, ClientProfileInput
from dossier.workspace.naming import slugify

if TYPE_CHECKING:
    from dossier.workspace.settings import DossierSettings

MISSING_RELATION_CODE = "PGRST205"
NO_ROWS_CODE = "PGRST116"
DUPLICATE_CODE = "23505"
FOREIGN_KEY_CODE = "23503"
NETWORK_ERROR_CODE = "network"

_COLUMNS = "id,folder_path,name,email,phone,address,notes,description,created_at,updated_at"


class ProfileServiceError(Exception):
    """Failure reported by the profile service, tagged with its error code."""

    def __init__(self, code: str | None, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code

    @property
    def is_unavailable(self) -> bool:
        return self.code == MISSING_RELATION_CODE


@runtime_checkable
class ProfileService(Protocol):
    """Async protocol for the remote profile store."""

    async def fetch_profiles(self) -> dict[str, ClientProfile]:
        """Return every profile keyed by slug."""
        ...

    async def upsert_profile(self, payload: ClientProfileInput) -> ClientProfile:
        """Create or update the profile for ``payload.slug``."""
        ...


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def split_display_name(display_name: str) -> tuple[str, str]:
    parts = display_name.split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def profile_from_row(row: dict[str, Any]) -> ClientProfile | None:
    """Map a table row to a profile; ``None`` when no usable slug exists.

    Slug precedence: ``folder_path``, then the slugged ``name``, then ``id``.
    """
    slug = _text(row.get("folder_path")) or slugify(_text(row.get("name"))) or _text(row.get("id"))
    if not slug:
        return None
    display_name = _text(row.get("name")) or slug
    first_name, last_name = split_display_name(display_name)
    return ClientProfile(
        slug=slug,
        display_name=display_name,
        first_name=first_name,
        last_name=last_name,
        email=row.get("email") or "",
        phone=row.get("phone") or "",
        address=row.get("address") or "",
        description=row.get("description") or row.get("notes") or "",
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def row_from_input(payload: ClientProfileInput) -> dict[str, Any]:
    display_name = resolve_display_name(payload)
    return {
        "folder_path": payload.slug,
        "name": display_name,
        "email": payload.email or None,
        "phone": payload.phone or None,
        "address": payload.address or None,
        "notes": payload.description or None,
        "description": payload.description or None,
        "status": "active",
    }


def resolve_display_name(payload: ClientProfileInput) -> str:
    explicit = (payload.display_name or "").strip()
    joined = f"{payload.first_name} {payload.last_name}".strip()
    return explicit or joined or payload.slug


# ---------------------------------------------------------------------------
# HTTP implementation
# ---------------------------------------------------------------------------


class HttpProfileService:
    """PostgREST client for the profile table.

    Layout::

        GET  {base_url}/rest/v1/{table}?select=...
        POST {base_url}/rest/v1/{table}?on_conflict=folder_path
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        table: str = "clients",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self._table = table
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)
        self._headers = headers

    @property
    def _endpoint(self) -> str:
        return f"/rest/v1/{self._table}"

    async def fetch_profiles(self) -> dict[str, ClientProfile]:
        rows = await self._request("GET", self._endpoint, params={"select": _COLUMNS})
        profiles: dict[str, ClientProfile] = {}
        for row in rows or []:
            profile = profile_from_row(row)
            if profile is None:
                logger.warning("Ignoring profile row without usable slug: {}", row.get("id"))
                continue
            profiles[profile.slug] = profile
        return profiles

    async def upsert_profile(self, payload: ClientProfileInput) -> ClientProfile:
        rows = await self._request(
            "POST",
            self._endpoint,
            params={"on_conflict": "folder_path", "select": _COLUMNS},
            json=row_from_input(payload),
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        row = rows[0] if isinstance(rows, list) and rows else rows
        if not isinstance(row, dict):
            msg = f"Profile service returned no row for {payload.slug}"
            raise ProfileServiceError(NO_ROWS_CODE, msg)

        stored = profile_from_row(row) or ClientProfile(slug=payload.slug, display_name=payload.slug)
        display_name = resolve_display_name(payload)
        first_name, last_name = split_display_name(display_name)
        return stored.model_copy(
            update={
                "slug": payload.slug,
                "display_name": display_name,
                "first_name": first_name,
                "last_name": last_name,
            }
        )

    async def _request(self, method: str, url: str, *, headers: dict[str, str] | None = None, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, url, headers={**self._headers, **(headers or {})}, **kwargs)
        except httpx.HTTPError as exc:
            msg = f"Profile service unreachable: {exc}"
            raise ProfileServiceError(NETWORK_ERROR_CODE, msg) from exc

        if resp.is_error:
            raise _error_from_response(resp)
        if not resp.content:
            return None
        return resp.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpProfileService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def _error_from_response(resp: httpx.Response) -> ProfileServiceError:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    code = body.get("code")
    message = body.get("message") or resp.reason_phrase or f"HTTP {resp.status_code}"
    return ProfileServiceError(str(code) if code is not None else None, message, resp.status_code)


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class InMemoryProfileService:
    """Process-local profile store.

    ``available=False`` makes every call fail with ``MISSING_RELATION_CODE``,
    the same signal a server without the profile table sends.
    """

    def __init__(self, profiles: dict[str, ClientProfile] | None = None, *, available: bool = True) -> None:
        self.profiles: dict[str, ClientProfile] = dict(profiles or {})
        self.available = available
        self.upsert_calls: list[ClientProfileInput] = []

    def _check(self) -> None:
        if not self.available:
            msg = "Could not find the profile table in the schema cache"
            raise ProfileServiceError(MISSING_RELATION_CODE, msg, 404)

    async def fetch_profiles(self) -> dict[str, ClientProfile]:
        self._check()
        return dict(self.profiles)

    async def upsert_profile(self, payload: ClientProfileInput) -> ClientProfile:
        self._check()
        self.upsert_calls.append(payload)
        display_name = resolve_display_name(payload)
        first_name, last_name = split_display_name(display_name)
        previous = self.profiles.get(payload.slug)
        profile = ClientProfile(
            slug=payload.slug,
            display_name=display_name,
            first_name=payload.first_name or first_name,
            last_name=payload.last_name or last_name,
            email=payload.email,
            phone=payload.phone,
            address=payload.address,
            description=payload.description,
            created_at=previous.created_at if previous else None,
        )
        self.profiles[payload.slug] = profile
        return profile


def build_profile_service(settings: DossierSettings) -> HttpProfileService | None:
    """Create the HTTP client when a profile service URL is configured."""
    if not settings.profiles_configured:
        return None
    api_key = settings.profile_service_key.get_secret_value() if settings.profile_service_key else None
    return HttpProfileService(
        settings.profile_service_url or "",
        api_key,
        table=settings.profile_table,
        timeout=settings.profile_timeout,
    )
