import json
from typing import Callable, List

import httpx
import pytest

from services.sso.directory import SystemActor, UserDirectoryError
from services.sso.directory_http import HttpUserDirectory

ACTOR = SystemActor(user_id="1", api_key="system-key")


def _directory(handler: Callable[[httpx.Request], httpx.Response], seen: List[httpx.Request]) -> HttpUserDirectory:
    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.Client(transport=httpx.MockTransport(_record), base_url="https://forum.test")
    return HttpUserDirectory("https://forum.test", client=client)


def test_find_returns_exact_email_match_only():
    seen: List[httpx.Request] = []
    body = {
        "data": [
            {"type": "users", "id": "5", "attributes": {"email": "A@x.com"}},
            {"type": "users", "id": "6", "attributes": {"email": "a@x.com"}},
        ]
    }
    directory = _directory(lambda request: httpx.Response(200, json=body), seen)

    assert directory.find_user_id_by_email("a@x.com", actor=ACTOR) == "6"
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/api/users"
    assert request.url.params["filter[email]"] == "a@x.com"
    assert request.headers["Authorization"] == "Token system-key; userId=1"


def test_find_returns_none_when_no_user_matches():
    directory = _directory(lambda request: httpx.Response(200, json={"data": []}), [])

    assert directory.find_user_id_by_email("a@x.com", actor=ACTOR) is None


def test_create_posts_activated_user_and_returns_id():
    seen: List[httpx.Request] = []
    directory = _directory(lambda request: httpx.Response(201, json={"data": {"type": "users", "id": 42}}), seen)

    user_id = directory.create_user(
        username="Alice",
        email="a@x.com",
        avatar_url="",
        password="generated",
        is_activated=True,
        actor=ACTOR,
    )

    assert user_id == "42"
    request = seen[0]
    assert request.method == "POST"
    assert json.loads(request.content) == {
        "data": {
            "type": "users",
            "attributes": {
                "username": "Alice",
                "email": "a@x.com",
                "password": "generated",
                "isActivated": True,
                "avatarUrl": "",
            },
        }
    }


def test_update_sends_group_relationships():
    seen: List[httpx.Request] = []
    directory = _directory(lambda request: httpx.Response(200, json={"data": {"id": "42"}}), seen)

    directory.update_user("42", username="Alice", avatar_url="https://img/a.png", group_ids=["1", "2"], actor=ACTOR)

    request = seen[0]
    assert request.method == "PATCH"
    assert request.url.path == "/api/users/42"
    assert json.loads(request.content)["data"] == {
        "type": "users",
        "id": "42",
        "attributes": {"username": "Alice", "avatarUrl": "https://img/a.png"},
        "relationships": {
            "groups": {"data": [{"type": "groups", "id": "1"}, {"type": "groups", "id": "2"}]},
        },
    }


def test_update_without_groups_omits_relationships():
    seen: List[httpx.Request] = []
    directory = _directory(lambda request: httpx.Response(200, json={"data": {"id": "42"}}), seen)

    directory.update_user("42", username="Alice", avatar_url="", group_ids=[], actor=ACTOR)

    assert "relationships" not in json.loads(seen[0].content)["data"]


def test_actor_without_api_key_sends_no_authorization_header():
    seen: List[httpx.Request] = []
    directory = _directory(lambda request: httpx.Response(200, json={"data": []}), seen)

    directory.find_user_id_by_email("a@x.com", actor=SystemActor(user_id="1"))

    assert "Authorization" not in seen[0].headers


def _raise_connect_error(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


@pytest.mark.parametrize(
    ("handler", "code"),
    [
        (lambda request: httpx.Response(500, json={"errors": []}), "sso.directory_http_status"),
        (lambda request: httpx.Response(422, json={"errors": [{"detail": "taken"}]}), "sso.directory_http_status"),
        (lambda request: httpx.Response(200, content=b"<html>oops</html>"), "sso.directory_invalid_body"),
        (lambda request: httpx.Response(200, json={"errors": []}), "sso.directory_missing_data"),
        (lambda request: httpx.Response(200, json=[1, 2]), "sso.directory_missing_data"),
        (_raise_connect_error, "sso.directory_http_error"),
    ],
)
def test_unusable_responses_raise_directory_error(handler, code):
    directory = _directory(handler, [])

    with pytest.raises(UserDirectoryError) as excinfo:
        directory.update_user("42", username="Alice", avatar_url="", group_ids=[], actor=ACTOR)

    assert excinfo.value.code == code


def test_create_without_id_raises():
    directory = _directory(lambda request: httpx.Response(201, json={"data": {"type": "users"}}), [])

    with pytest.raises(UserDirectoryError) as excinfo:
        directory.create_user(
            username="Alice", email="a@x.com", avatar_url="", password="p", is_activated=True, actor=ACTOR
        )

    assert excinfo.value.code == "sso.directory_missing_id"
