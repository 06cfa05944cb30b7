"""JSON:API user-management client used as the provisioning backend."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx

from core.logging import get_logger
from services.sso.directory import SystemActor, UserDirectoryError

logger = get_logger(__name__)

_JSON_API = "application/vnd.api+json"


class HttpUserDirectory:
    """Talks to ``/api/users`` on the forum API with a system actor token."""

    def __init__(self, base_url: str, *, timeout_seconds: float = 10.0, client: Optional[httpx.Client] = None):
        self._client = client or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds, connect=5.0),
        )

    def close(self) -> None:
        self._client.close()

    def ping(self) -> Tuple[bool, Optional[str]]:
        """Readiness check against the forum API root."""
        try:
            response = self._client.get("/api", headers={"Accept": _JSON_API})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            return False, str(exc)
        return True, None

    @staticmethod
    def _headers(actor: SystemActor) -> Dict[str, str]:
        headers = {"Accept": _JSON_API, "Content-Type": _JSON_API}
        if actor.api_key:
            headers["Authorization"] = f"Token {actor.api_key}; userId={actor.user_id}"
        return headers

    def _send(
        self,
        method: str,
        path: str,
        *,
        actor: SystemActor,
        params: Optional[Mapping[str, str]] = None,
        body: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        try:
            response = self._client.request(method, path, params=params, json=body, headers=self._headers(actor))
            response.raise_for_status()
            document = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("User API %s %s failed with status %s.", method, path, exc.response.status_code)
            raise UserDirectoryError("sso.directory_http_status", "User API rejected the request.") from exc
        except httpx.HTTPError as exc:
            logger.warning("User API %s %s unreachable: %s", method, path, exc)
            raise UserDirectoryError("sso.directory_http_error", "User API is unreachable.") from exc
        except ValueError as exc:
            raise UserDirectoryError("sso.directory_invalid_body", "User API returned an undecodable body.") from exc
        data = document.get("data") if isinstance(document, Mapping) else None
        if data is None:
            raise UserDirectoryError("sso.directory_missing_data", "User API response has no data.")
        return data

    def find_user_id_by_email(self, email: str, *, actor: SystemActor) -> Optional[str]:
        data = self._send("GET", "/api/users", actor=actor, params={"filter[email]": email})
        entries: List[Any] = data if isinstance(data, list) else [data]
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            attributes = entry.get("attributes") or {}
            # The API filter may be case-insensitive; identity matching is exact.
            if attributes.get("email") == email and entry.get("id") is not None:
                return str(entry["id"])
        return None

    def create_user(
        self,
        *,
        username: str,
        email: str,
        avatar_url: str,
        password: str,
        is_activated: bool,
        actor: SystemActor,
    ) -> str:
        body = {
            "data": {
                "type": "users",
                "attributes": {
                    "username": username,
                    "email": email,
                    "password": password,
                    "isActivated": is_activated,
                    "avatarUrl": avatar_url,
                },
            }
        }
        data = self._send("POST", "/api/users", actor=actor, body=body)
        user_id = data.get("id") if isinstance(data, Mapping) else None
        if user_id is None:
            raise UserDirectoryError("sso.directory_missing_id", "User API did not return the new user id.")
        return str(user_id)

    def update_user(
        self,
        user_id: str,
        *,
        username: str,
        avatar_url: str,
        group_ids: Sequence[str],
        actor: SystemActor,
    ) -> None:
        data: Dict[str, Any] = {
            "type": "users",
            "id": user_id,
            "attributes": {"username": username, "avatarUrl": avatar_url},
        }
        if group_ids:
            data["relationships"] = {
                "groups": {"data": [{"type": "groups", "id": group_id} for group_id in group_ids]},
            }
        self._send("PATCH", f"/api/users/{user_id}", actor=actor, body={"data": data})


__all__ = ["HttpUserDirectory"]
