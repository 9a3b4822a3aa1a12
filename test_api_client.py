import httpx
import pytest

from api_client import LibraryAPIError, LibraryClient


@pytest.fixture
def api(client):
    return LibraryClient(http=client)


def _signed_in(api, client):
    data = api.register("Reader", "reader@example.com", "secret1")
    api.verify_email(data["user"]["id"], data["verify_token"])
    api.login("reader@example.com", "secret1")
    return data["user"]["id"]


def test_client_round_trip(api, client):
    user_id = _signed_in(api, client)
    assert api.get_profile()["id"] == user_id

    book = api.create_book("Dune", "Frank Herbert", rating=5, thumbnail=("cover.png", b"png", "image/png"))
    assert book["uploader"]["id"] == user_id

    listing = api.list_books(search="dune")
    assert listing["total"] == 1
    assert api.update_book(book["id"], title="Dune Messiah")["title"] == "Dune Messiah"

    api.delete_book(book["id"])
    assert api.list_books()["total"] == 0


def test_client_refreshes_once_on_401(api, client):
    _signed_in(api, client)
    old_refresh = api.refresh_token
    client.cookies.clear()
    api.access_token = "expired-or-garbage"

    profile = api.get_profile()
    assert profile["email"] == "reader@example.com"
    assert api.access_token != "expired-or-garbage"
    assert api.refresh_token != old_refresh


def test_client_raises_api_error(api):
    with pytest.raises(LibraryAPIError) as exc_info:
        api.login("nobody@example.com", "secret1")
    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Invalid credentials"


def _mock_client(handler):
    return LibraryClient(http=httpx.Client(transport=httpx.MockTransport(handler), base_url="http://test"))


def _envelope(success, message, data=None):
    return {"success": success, "message": message, "data": data, "errors": None}


def test_client_gives_up_when_refresh_fails():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(401, json=_envelope(False, "Unauthorized"))

    api = _mock_client(handler)
    api.refresh_token = "stale"
    with pytest.raises(LibraryAPIError) as exc_info:
        api.get_profile()

    assert exc_info.value.status_code == 401
    assert calls == ["/users/profile", "/auth/refresh-token"]
    assert api.refresh_token is None


def test_client_retries_only_once():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        if request.url.path == "/auth/refresh-token":
            return httpx.Response(
                200, json=_envelope(True, "Token refreshed", {"access_token": "a2", "refresh_token": "r2"})
            )
        return httpx.Response(401, json=_envelope(False, "Unauthorized"))

    api = _mock_client(handler)
    with pytest.raises(LibraryAPIError):
        api.get_profile()

    assert calls == ["/users/profile", "/auth/refresh-token", "/users/profile"]


def test_client_sends_bearer_after_refresh():
    seen = []

    def handler(request):
        seen.append((request.url.path, request.headers.get("Authorization")))
        if request.url.path == "/auth/refresh-token":
            return httpx.Response(
                200, json=_envelope(True, "Token refreshed", {"access_token": "fresh", "refresh_token": "r2"})
            )
        if request.headers.get("Authorization") == "Bearer fresh":
            return httpx.Response(200, json=_envelope(True, "ok", {"id": 1}))
        return httpx.Response(401, json=_envelope(False, "Unauthorized"))

    api = _mock_client(handler)
    api.access_token = "old"
    assert api.get_profile() == {"id": 1}
    assert seen[-1] == ("/users/profile", "Bearer fresh")


def test_client_does_not_refresh_public_paths():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(401, json=_envelope(False, "Invalid credentials"))

    api = _mock_client(handler)
    with pytest.raises(LibraryAPIError):
        api.login("a@x.com", "secret1")
    assert calls == ["/auth/login"]
