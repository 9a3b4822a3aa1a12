"""HTTP client for the library API.

``LibraryClient`` keeps the session cookies the server sets on login, also
sends the access token as a bearer header, and when a protected call comes
back 401 it calls ``/auth/refresh-token`` once and replays the request.
"""
import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

PUBLIC_PATHS = ("/auth/login", "/auth/register", "/auth/refresh-token")


class LibraryAPIError(Exception):
    def __init__(self, status_code: int, message: str, errors: Any = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.errors = errors


class LibraryClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ):
        self._http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self._owns_http = http is None
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # plumbing

    def _headers(self) -> dict:
        if self.access_token:
            return {"Authorization": f"Bearer {self.access_token}"}
        return {}

    def _store_tokens(self, data: Optional[dict]) -> None:
        if data and data.get("access_token"):
            self.access_token = data["access_token"]
            self.refresh_token = data.get("refresh_token")

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        return self._http.request(method, path, headers=self._headers(), **kwargs)

    def _request(self, method: str, path: str, **kwargs) -> Any:
        response = self._send(method, path, **kwargs)

        if response.status_code == 401 and not path.startswith(PUBLIC_PATHS):
            logger.debug(f"{method} {path} unauthorized, refreshing session")
            if self._try_refresh():
                response = self._send(method, path, **kwargs)

        return self._unwrap(response)

    def _try_refresh(self) -> bool:
        body = {"refresh_token": self.refresh_token} if self.refresh_token else None
        response = self._http.post("/auth/refresh-token", json=body)
        if response.status_code != 200:
            self.access_token = None
            self.refresh_token = None
            return False
        self._store_tokens(response.json().get("data"))
        return True

    @staticmethod
    def _unwrap(response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError:
            body = {"success": False, "message": response.text or response.reason_phrase}

        if response.is_error or not body.get("success", False):
            raise LibraryAPIError(response.status_code, body.get("message", ""), body.get("errors"))
        return body.get("data")

    # auth

    def register(self, name: str, email: str, password: str) -> dict:
        return self._request(
            "POST", "/auth/register", json={"name": name, "email": email, "password": password}
        )

    def verify_email(self, user_id: int, token: str) -> dict:
        return self._request("GET", "/auth/verify-email", params={"id": user_id, "token": token})

    def login(self, email: str, password: str) -> dict:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self._store_tokens(data)
        return data

    def refresh(self) -> bool:
        return self._try_refresh()

    def logout(self) -> None:
        body = {"refresh_token": self.refresh_token} if self.refresh_token else None
        self._request("POST", "/auth/logout", json=body)
        self.access_token = None
        self.refresh_token = None

    def forgot_password(self, email: str) -> Optional[dict]:
        return self._request("POST", "/auth/forgot-password", json={"email": email})

    def reset_password(self, user_id: int, token: str, password: str) -> None:
        self._request(
            "POST", "/auth/reset-password", json={"id": user_id, "token": token, "password": password}
        )

    # books

    def list_books(self, **filters) -> dict:
        params = {k: v for k, v in filters.items() if v is not None}
        return self._request("GET", "/books", params=params)

    def get_book(self, book_id: int) -> dict:
        return self._request("GET", f"/books/{book_id}")

    def create_book(self, title: str, author: str, description: str | None = None,
                    rating: int | None = None, thumbnail: tuple | None = None) -> dict:
        fields = {"title": title, "author": author, "description": description, "rating": rating}
        files = {"thumbnail": thumbnail} if thumbnail else None
        return self._request(
            "POST", "/books", data={k: v for k, v in fields.items() if v is not None}, files=files
        )

    def update_book(self, book_id: int, thumbnail: tuple | None = None, **fields) -> dict:
        files = {"thumbnail": thumbnail} if thumbnail else None
        return self._request(
            "PUT", f"/books/{book_id}",
            data={k: v for k, v in fields.items() if v is not None}, files=files,
        )

    def delete_book(self, book_id: int) -> None:
        self._request("DELETE", f"/books/{book_id}")

    # users

    def get_profile(self) -> dict:
        return self._request("GET", "/users/profile")

    def update_profile(self, **fields) -> dict:
        return self._request("PUT", "/users/profile", json=fields)

    def upload_avatar(self, avatar: tuple) -> dict:
        return self._request("PUT", "/users/avatar", files={"avatar": avatar})

    def list_users(self, **filters) -> dict:
        params = {k: v for k, v in filters.items() if v is not None}
        return self._request("GET", "/users", params=params)
