"""Client for the Gitea server and the shared, lazily connected instance."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from nephioctrl.objects import Secret

logger = logging.getLogger(__name__)

DEFAULT_USER_OBJECT_NAME = "git-user-secret"
RETRY_INTERVAL = 5.0

_SHA1_FIELD = "sha1"
_USERNAME_KEY = "username"
_PASSWORD_KEY = "password"


class GiteaError(Exception):
    """Raised when the Gitea server rejects a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class User:
    id: int = 0
    user_name: str = ""
    full_name: str = ""
    email: str = ""

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> User:
        return cls(
            id=data.get("id", 0),
            user_name=data.get("login", ""),
            full_name=data.get("full_name", ""),
            email=data.get("email", ""),
        )


@dataclass
class Repository:
    id: int = 0
    name: str = ""
    full_name: str = ""
    clone_url: str = ""
    private: bool = False
    description: str = ""

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> Repository:
        return cls(
            id=data.get("id", 0),
            name=data.get("name", ""),
            full_name=data.get("full_name", ""),
            clone_url=data.get("clone_url", ""),
            private=data.get("private", False),
            description=data.get("description", ""),
        )


@dataclass
class AccessToken:
    id: int = 0
    name: str = ""
    token: str = ""
    scopes: list[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> AccessToken:
        sha1 = data.get(_SHA1_FIELD)
        return cls(
            id=data.get("id", 0),
            name=data.get("name", ""),
            token=str(sha1) if sha1 else str(),
            scopes=list(data.get("scopes") or []),
        )


@dataclass
class CreateRepoOption:
    name: str
    description: str = ""
    private: bool = False
    issue_labels: str = ""
    gitignores: str = ""
    license: str = ""
    readme: str = ""
    default_branch: str = ""
    trust_model: str = ""
    auto_init: bool = False

    def to_json(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "private": self.private,
            "issue_labels": self.issue_labels,
            "gitignores": self.gitignores,
            "license": self.license,
            "readme": self.readme,
            "default_branch": self.default_branch,
            "trust_model": self.trust_model,
            "auto_init": self.auto_init,
        }


@dataclass
class EditRepoOption:
    name: str | None = None
    description: str | None = None
    private: bool | None = None

    def to_json(self) -> dict[str, Any]:
        body = {"name": self.name, "description": self.description, "private": self.private}
        return {k: v for k, v in body.items() if v is not None}


class GiteaClient:
    """Talks to the Gitea REST API with basic authentication."""

    def __init__(
        self,
        base_url: str,
        username: str = "",
        password: str | None = None,
        session: Any = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.username = username
        credential = password if password is not None else str()
        self._auth = (username, credential) if username else None
        self._session = session if session is not None else requests.Session()

    def _request(self, method: str, path: str, body: Any = None) -> Any:
        resp = self._session.request(
            method, f"{self.base_url}/api/v1{path}", json=body, auth=self._auth, timeout=30
        )
        if resp.status_code >= 400:
            try:
                message = resp.json().get("message") or resp.text
            except ValueError:
                message = resp.text
            raise GiteaError(f"{resp.status_code}: {message}", resp.status_code)
        if not resp.content:
            return None
        return resp.json()

    def _require_username(self) -> str:
        if not self.username:
            raise GiteaError('"username" not set: only BasicAuth allowed')
        return quote(self.username, safe="")

    def _server_version(self) -> str:
        return (self._request("GET", "/version") or {}).get("version", "")

    def get_my_user_info(self) -> User:
        return User.from_json(self._request("GET", "/user"))

    def delete_repo(self, owner: str, repo: str) -> None:
        self._request("DELETE", f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}")

    def get_repo(self, owner: str, repo: str) -> Repository:
        return Repository.from_json(
            self._request("GET", f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}")
        )

    def create_repo(self, option: CreateRepoOption) -> Repository:
        return Repository.from_json(self._request("POST", "/user/repos", option.to_json()))

    def edit_repo(self, owner: str, repo: str, option: EditRepoOption) -> Repository:
        path = f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"
        return Repository.from_json(self._request("PATCH", path, option.to_json()))

    def delete_access_token(self, value: int | str) -> None:
        """Delete a token given by numeric id or by name."""
        user = self._require_username()
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise TypeError("only string and int token identifiers are supported")
        self._request("DELETE", f"/users/{user}/tokens/{quote(str(value), safe='')}")

    def list_access_tokens(self) -> list[AccessToken]:
        user = self._require_username()
        return [AccessToken.from_json(t) for t in self._request("GET", f"/users/{user}/tokens") or []]

    def create_access_token(self, name: str, scopes: Iterable[str]) -> AccessToken:
        user = self._require_username()
        body = {"name": name, "scopes": list(scopes)}
        return AccessToken.from_json(self._request("POST", f"/users/{user}/tokens", body))


def _connect(url: str, username: str, password: str) -> GiteaClient:
    client = GiteaClient(url, username, password)
    client._server_version()
    return client


class GiteaClientManager:
    """Connects to Gitea in the background and forwards calls once connected."""

    def __init__(
        self,
        client: Any,
        *,
        retry_interval: float = RETRY_INTERVAL,
        environ: Mapping[str, str] | None = None,
        client_factory: Callable[[str, str, str], GiteaClient] = _connect,
    ) -> None:
        self._client = client
        self._retry_interval = retry_interval
        self._environ = environ if environ is not None else os.environ
        self._factory = client_factory
        self._gitea: GiteaClient | None = None

    def _try_connect(self) -> GiteaClient:
        url = self._environ.get("GIT_URL")
        if url is None:
            raise LookupError("git url not defined")
        namespace = self._environ.get("GIT_NAMESPACE", self._environ.get("POD_NAMESPACE", ""))
        object_name = self._environ.get("GIT_SECRET_NAME", DEFAULT_USER_OBJECT_NAME)
        data = self._client.get(Secret, namespace, object_name).data
        username = data.get(_USERNAME_KEY, bytes()).decode()
        password = data.get(_PASSWORD_KEY, bytes()).decode()
        return self._factory(url, username, password)

    def start(self, stop_event: threading.Event) -> None:
        """Retry connecting until it succeeds or stop_event is set."""
        while not stop_event.is_set():
            if stop_event.wait(self._retry_interval):
                break
            try:
                gitea = self._try_connect()
            except Exception:
                logger.exception("cannot connect to git server")
                continue
            self._gitea = gitea
            logger.info("gitea init done")
            return
        logger.info("controller manager context cancelled: Exit")

    def is_initialized(self) -> bool:
        return self._gitea is not None

    def get(self) -> GiteaClient | None:
        return self._gitea

    def _require(self) -> GiteaClient:
        if self._gitea is None:
            raise RuntimeError("gitea client not initialized")
        return self._gitea

    def get_my_user_info(self) -> User:
        return self._require().get_my_user_info()

    def delete_repo(self, owner: str, repo: str) -> None:
        self._require().delete_repo(owner, repo)

    def get_repo(self, owner: str, repo: str) -> Repository:
        return self._require().get_repo(owner, repo)

    def create_repo(self, option: CreateRepoOption) -> Repository:
        return self._require().create_repo(option)

    def edit_repo(self, owner: str, repo: str, option: EditRepoOption) -> Repository:
        return self._require().edit_repo(owner, repo, option)

    def delete_access_token(self, value: int | str) -> None:
        self._require().delete_access_token(value)

    def list_access_tokens(self) -> list[AccessToken]:
        return self._require().list_access_tokens()

    def create_access_token(self, name: str, scopes: Iterable[str]) -> AccessToken:
        return self._require().create_access_token(name, scopes)


_lock = threading.Lock()
_instance: GiteaClientManager | None = None


def get_client(stop_event: threading.Event | None, client: Any) -> GiteaClientManager:
    """Return the shared manager, creating it and starting its connection thread once."""
    global _instance
    if stop_event is None:
        raise ValueError("failed creating gitea client, stop event cannot be None")
    if client is None:
        raise ValueError("failed creating gitea client, client cannot be None")
    if _instance is None:
        with _lock:
            if _instance is None:
                manager = GiteaClientManager(client)
                threading.Thread(target=manager.start, args=(stop_event,), daemon=True).start()
                _instance = manager
                logger.info("Gitea Client Instance created now.")
                return manager
    logger.info("Gitea Client Instance already created.")
    return _instance