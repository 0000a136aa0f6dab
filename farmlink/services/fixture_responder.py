"""
Fixture Responder.

Development-mode stand-in for the FarmLink backend.  When the client
runs with ``DEVELOPMENT_MODE`` on, the ``ApiClient``'s HTTP transport is
a ``FixtureTransport``: requests are answered here, before they leave
the process, with bodies shaped exactly like the real backend's and
after a fixed artificial delay.

Routing
-------
1. Strip the API path prefix (``/api``) and the query string.
2. Multipart uploads are answered first with placeholder image URLs.
3. The remaining path is matched against an ordered list of resource
   patterns (``products``, ``orders``, ``visits``, ``farmers``, ``auth``)
   anchored at the path start, then dispatched by HTTP method.
4. Anything else receives a generic success acknowledgement.

The responder keeps its own fixture identity (the "logged-in" mock user)
separate from the client's ``SessionStore``.  ``seed_identity`` is the
explicit synchronization step used when a stored session already exists
at startup; afterwards identity changes flow back to the client through
ordinary responses, exactly as they would from a real backend.
"""

from __future__ import annotations

import asyncio
import copy
import json
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

import httpx
import jwt
from pydantic import BaseModel

from farmlink.logger import StructuredLogger
from farmlink.models.auth_models import PaginatedResponse
from farmlink.models.enums import FixtureMissPolicy, Role
from farmlink.models.user import User
from farmlink.services.fixtures import CREATE_DEFAULTS, FixtureCatalog, Record

Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]

_RESOURCE_ROUTES: list[tuple[str, re.Pattern[str]]] = [
    (resource, re.compile(rf"^/{resource}(?:/|$)"))
    for resource in ("products", "orders", "visits", "farmers", "auth")
]

_ID_PREFIXES: dict[str, str] = {
    "products": "prod",
    "orders": "order",
    "visits": "visit",
    "farmers": "farmer",
}

_PLACEHOLDER_IMAGE: str = "https://via.placeholder.com/400"
_DEFAULT_PAGE: int = 1
_DEFAULT_LIMIT: int = 20


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FixtureReply(BaseModel):
    """Status code and JSON body produced for one intercepted request."""

    status_code: int = 200
    body: Any = None


class FixtureResponder:
    """Answers backend calls from an in-memory ``FixtureCatalog``.

    Parameters
    ----------
    catalog:
        Per-session fixture collections and mock users.
    logger:
        Structured logger; every intercepted call is logged at DEBUG.
    latency_s:
        Artificial delay applied to every non-upload request.
    upload_latency_s:
        Artificial delay applied to multipart uploads.
    miss_policy:
        What a lookup for an unknown id returns.  ``NOT_FOUND`` answers
        404; ``FIRST_RECORD`` answers the first entry of the collection.
    path_prefix:
        API prefix stripped before routing (e.g. ``/api``).
    token_secret:
        HS256 secret for the bearer tokens minted on login/register.
    token_ttl_s:
        Lifetime of minted tokens.
    clock / sleep:
        Injectable time sources.
    """

    def __init__(
        self,
        catalog: FixtureCatalog,
        logger: StructuredLogger,
        *,
        latency_s: float = 0.3,
        upload_latency_s: float = 0.5,
        miss_policy: FixtureMissPolicy = FixtureMissPolicy.NOT_FOUND,
        path_prefix: str = "/api",
        token_secret: str = "farmlink-development-fixture-signing-key",
        token_ttl_s: int = 86_400,
        clock: Clock = _utcnow,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._catalog = catalog
        self._logger = logger
        self._latency_s = latency_s
        self._upload_latency_s = upload_latency_s
        self._miss_policy = miss_policy
        self._path_prefix = path_prefix.rstrip("/")
        self._token_secret = token_secret
        self._token_ttl_s = token_ttl_s
        self._clock = clock
        self._sleep = sleep
        self._identity: Optional[Record] = None

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def miss_policy(self) -> FixtureMissPolicy:
        return self._miss_policy

    @property
    def identity(self) -> Optional[Record]:
        """The fixture's notion of the signed-in user (a copy)."""
        return copy.deepcopy(self._identity) if self._identity is not None else None

    def seed_identity(self, user: Optional[User]) -> None:
        """Align the fixture identity with a user already held client-side."""
        self._identity = user.model_dump(mode="json") if user is not None else None

    def mint_token(self, user: Record) -> str:
        """Issue a signed bearer token for *user* with a real ``exp`` claim."""
        now = self._clock()
        claims = {
            "sub": user["id"],
            "roles": user.get("roles", []),
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self._token_ttl_s)).timestamp()),
        }
        return jwt.encode(claims, self._token_secret, algorithm="HS256")

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def respond(
        self,
        method: str,
        path: str,
        body: Any = None,
        query: Optional[dict[str, str]] = None,
        *,
        is_upload: bool = False,
        is_multi: bool = False,
        file_count: int = 1,
    ) -> FixtureReply:
        """Produce the fixture reply for one request."""
        method = method.upper()
        endpoint = self._strip_prefix(path.split("?", 1)[0])
        self._logger.debug("Fixture request: %s %s", method, endpoint)

        if is_upload:
            await self._sleep(self._upload_latency_s)
            return self._handle_upload(endpoint, is_multi, file_count)

        await self._sleep(self._latency_s)
        payload: Record = body if isinstance(body, dict) else {}
        params = query or {}

        for resource, pattern in _RESOURCE_ROUTES:
            if pattern.match(endpoint):
                if resource == "auth":
                    return self._handle_auth(method, endpoint, payload)
                return self._handle_resource(resource, method, endpoint, payload, params)

        return FixtureReply(body={"success": True, "message": "Mock response"})

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def _handle_resource(
        self,
        resource: str,
        method: str,
        endpoint: str,
        payload: Record,
        params: dict[str, str],
    ) -> FixtureReply:
        segments = endpoint.strip("/").split("/")
        entity_id: Optional[str] = segments[1] if len(segments) > 1 else None

        if method == "GET":
            if resource == "visits" and entity_id in ("my-visits", "assigned"):
                return self._paginate(self._catalog.collection("visits"), params)
            if resource == "farmers" and len(segments) == 3 and segments[2] == "products":
                products = [
                    p for p in self._catalog.collection("products")
                    if p.get("farmer_id") == entity_id
                ]
                return self._paginate(products, params)
            if entity_id is not None and len(segments) == 2:
                return self._lookup(resource, entity_id)
            return self._paginate(self._catalog.collection(resource), params)

        if method == "POST":
            if entity_id is None or entity_id == "request":
                return FixtureReply(status_code=201, body=self._create(resource, payload))
            return FixtureReply(body={"success": True, **payload})

        if method in ("PUT", "PATCH"):
            return self._update(resource, entity_id, payload)

        if method == "DELETE":
            # Nothing is removed from the catalog.
            return FixtureReply(body={
                "success": True,
                "message": f"{resource.rstrip('s').capitalize()} deleted",
            })

        return FixtureReply(status_code=405, body={"message": f"{method} not supported"})

    def _lookup(self, resource: str, entity_id: str) -> FixtureReply:
        record = self._catalog.find(resource, entity_id)
        if record is None:
            record = self._on_miss(resource, entity_id)
            if record is None:
                return self._not_found(resource, entity_id)
        return FixtureReply(body=copy.deepcopy(record))

    def _create(self, resource: str, payload: Record) -> Record:
        now = self._clock().isoformat()
        record: Record = {
            "id": f"{_ID_PREFIXES[resource]}-{uuid.uuid4().hex[:12]}",
            **copy.deepcopy(CREATE_DEFAULTS.get(resource, {})),
            **payload,
            "created_at": now,
        }
        if resource == "orders":
            record.setdefault("order_number", f"ORD-{now[:4]}-{uuid.uuid4().int % 100_000:05d}")
        if resource == "visits":
            record["requested_at"] = now
        self._catalog.collection(resource).append(record)
        return copy.deepcopy(record)

    def _update(self, resource: str, entity_id: Optional[str], payload: Record) -> FixtureReply:
        record = self._catalog.find(resource, entity_id) if entity_id else None
        if record is None:
            record = self._on_miss(resource, entity_id)
            if record is None:
                return self._not_found(resource, entity_id)
        record.update(payload)
        record["updated_at"] = self._clock().isoformat()
        return FixtureReply(body=copy.deepcopy(record))

    def _on_miss(self, resource: str, entity_id: Optional[str]) -> Optional[Record]:
        collection = self._catalog.collection(resource)
        if self._miss_policy is FixtureMissPolicy.FIRST_RECORD and collection:
            self._logger.debug(
                "Fixture %s/%s not found; answering first record.", resource, entity_id,
            )
            return collection[0]
        return None

    def _not_found(self, resource: str, entity_id: Optional[str]) -> FixtureReply:
        return FixtureReply(
            status_code=404,
            body={"message": f"No {resource} record with id '{entity_id}'."},
        )

    @staticmethod
    def _paginate(records: list[Record], params: dict[str, str]) -> FixtureReply:
        try:
            page = max(1, int(params.get("page", _DEFAULT_PAGE)))
            limit = max(1, int(params.get("limit", _DEFAULT_LIMIT)))
        except ValueError:
            page, limit = _DEFAULT_PAGE, _DEFAULT_LIMIT
        start = (page - 1) * limit
        page_items = copy.deepcopy(records[start:start + limit])
        wrapper = PaginatedResponse(items=page_items, total=len(records), page=page, limit=limit)
        return FixtureReply(body=wrapper.model_dump())

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def _handle_auth(self, method: str, endpoint: str, payload: Record) -> FixtureReply:
        if endpoint in ("/auth/me", "/auth/profile"):
            if self._identity is None:
                return FixtureReply(status_code=401, body={"message": "Not signed in."})
            if method in ("PUT", "PATCH"):
                self._identity.update(payload)
                self._identity["updated_at"] = self._clock().isoformat()
            return FixtureReply(body=copy.deepcopy(self._identity))

        if method != "POST":
            return FixtureReply(body={"success": True})

        if endpoint == "/auth/register":
            return self._register(payload)
        if endpoint == "/auth/login":
            return self._login(payload)
        if endpoint == "/auth/add-role":
            return self._add_role(payload)
        if endpoint == "/auth/switch-role":
            return self._switch_role(payload)

        # logout, verify-phone, resend-otp, forgot/reset/change-password
        return FixtureReply(body={"success": True, "message": "Mock response"})

    def _register(self, payload: Record) -> FixtureReply:
        roles = payload.get("roles") or []
        if not roles:
            return FixtureReply(status_code=422, body={
                "message": "Please check your input and try again.",
                "errors": {"roles": ["At least one role is required."]},
            })
        user: Record = {
            key: value for key, value in payload.items()
            if key not in ("password", "confirm_password")
        }
        user.update({
            "id": f"user-{uuid.uuid4().hex[:12]}",
            "roles": list(roles),
            "profile_image_url": payload.get("profile_image_url"),
            "created_at": self._clock().isoformat(),
        })
        self._identity = user
        return FixtureReply(status_code=201, body={"token": self.mint_token(user), "user": copy.deepcopy(user)})

    def _login(self, payload: Record) -> FixtureReply:
        phone = payload.get("phone_number")
        if self._identity is not None and self._identity.get("phone_number") == phone:
            user = self._identity
        else:
            user = self._catalog.user_by_phone(phone) or self._catalog.default_user()
        self._identity = user
        return FixtureReply(body={"token": self.mint_token(user), "user": copy.deepcopy(user)})

    def _add_role(self, payload: Record) -> FixtureReply:
        if self._identity is None:
            return FixtureReply(status_code=401, body={"message": "Not signed in."})
        role = payload.get("role")
        if role not in {r.value for r in Role}:
            return FixtureReply(status_code=422, body={
                "message": "Please check your input and try again.",
                "errors": {"role": [f"Unknown role '{role}'."]},
            })
        roles: list[str] = self._identity.setdefault("roles", [])
        if role not in roles:
            roles.append(role)
        self._identity.update({k: v for k, v in payload.items() if k != "role"})
        return FixtureReply(body=copy.deepcopy(self._identity))

    def _switch_role(self, payload: Record) -> FixtureReply:
        if self._identity is None:
            return FixtureReply(status_code=401, body={"message": "Not signed in."})
        role = payload.get("role")
        if role not in self._identity.get("roles", []):
            return FixtureReply(status_code=403, body={"message": f"You do not hold the '{role}' role."})
        return FixtureReply(body={"success": True, "message": f"Switched to {role}"})

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    def _handle_upload(self, endpoint: str, is_multi: bool, file_count: int) -> FixtureReply:
        stamp = int(self._clock().timestamp() * 1000)
        if is_multi:
            images = [f"{_PLACEHOLDER_IMAGE}?text=Image+{i + 1}" for i in range(file_count)]
            return FixtureReply(body={"success": True, "images": images})

        if endpoint == "/auth/profile-image" and self._identity is not None:
            self._identity["profile_image_url"] = _PLACEHOLDER_IMAGE
        return FixtureReply(body={
            "success": True,
            "image_url": _PLACEHOLDER_IMAGE,
            "file_id": f"file-{stamp}",
        })

    def _strip_prefix(self, path: str) -> str:
        if self._path_prefix and (
            path == self._path_prefix or path.startswith(self._path_prefix + "/")
        ):
            path = path[len(self._path_prefix):]
        return path or "/"


class FixtureTransport(httpx.AsyncBaseTransport):
    """``httpx`` transport that answers every request from a ``FixtureResponder``.

    Plugged into the ``ApiClient``'s ``AsyncClient`` in development mode so
    the dispatcher's code path (auth header, error classification, 401
    teardown) is exercised unchanged.
    """

    def __init__(self, responder: FixtureResponder) -> None:
        self._responder = responder

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        content = await request.aread()
        content_type = request.headers.get("content-type", "")
        is_upload = content_type.startswith("multipart/form-data")

        body: Any = None
        gallery_count = 0
        if is_upload:
            gallery_count = content.count(b'name="files[')
        elif content:
            try:
                body = json.loads(content)
            except ValueError:
                body = None

        reply = await self._responder.respond(
            request.method,
            request.url.path,
            body,
            dict(request.url.params),
            is_upload=is_upload,
            is_multi=gallery_count > 0,
            file_count=max(1, gallery_count),
        )
        return httpx.Response(reply.status_code, json=reply.body, request=request)
