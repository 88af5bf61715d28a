"""Container daemon connection.

One explicitly constructed, explicitly owned handle per run. It is passed
into the build engine (and from there to the coordinator) rather than kept
in a module global, so tests can substitute a fake engine.
"""

from __future__ import annotations

import logging
from typing import Any

import docker
from docker.errors import APIError, DockerException

from mimikry.errors import ConfigurationError, DaemonError

logger = logging.getLogger(__name__)


class DaemonConnection:
    """Owns a ``docker.DockerClient`` and its registry login state.

    Parameters
    ----------
    client:
        An already constructed docker SDK client. Use :meth:`from_env`
        to build one from ``DOCKER_HOST`` and friends.
    """

    def __init__(self, client: docker.DockerClient) -> None:
        self._client = client
        self._logged_in_as: str | None = None

    @classmethod
    def from_env(cls, *, ping: bool = True) -> DaemonConnection:
        """Connect using the standard docker environment variables."""
        logger.debug("Creating docker client")
        try:
            client = docker.from_env()
        except DockerException as exc:
            raise DaemonError(f"create docker client: {exc}") from exc

        connection = cls(client)
        if ping:
            connection.ping()
        return connection

    @property
    def api(self) -> Any:
        """The low-level ``docker.APIClient`` used for streaming calls."""
        return self._client.api

    @property
    def logged_in_as(self) -> str | None:
        return self._logged_in_as

    def ping(self) -> None:
        logger.debug("Pinging docker daemon")
        try:
            self._client.ping()
        except (APIError, DockerException) as exc:
            raise DaemonError(f"ping docker daemon: {exc}") from exc

        try:
            version = self._client.version()
        except (APIError, DockerException) as exc:
            raise DaemonError(f"query docker version: {exc}") from exc
        logger.debug(
            "Docker daemon responded: version=%s api=%s",
            version.get("Version"),
            version.get("ApiVersion"),
        )

    def login(self, username: str, password: str, registry: str | None = None) -> None:
        """Authenticate against ``registry`` (Docker Hub when ``None``).

        The SDK keeps the credentials on the client, so every later push
        through :attr:`api` sends them along.
        """
        if not username or not password:
            raise ConfigurationError("docker login failed: username or password is empty")

        logger.debug("Logging in to docker registry as %s", username)
        try:
            response = self._client.login(
                username=username, password=password, registry=registry, reauth=True
            )
        except (APIError, DockerException) as exc:
            raise DaemonError(f"login to docker registry: {exc}") from exc

        logger.debug("Login response: %s", (response or {}).get("Status", "ok"))
        self._logged_in_as = username

    def logout(self) -> None:
        # The SDK has no logout; credentials only live in this process.
        logger.debug("Logging out of docker registry (noop)")
        self._logged_in_as = None

    def close(self) -> None:
        try:
            self._client.close()
        except DockerException as exc:
            logger.warning("Failed to close docker client: %s", exc)

    def __enter__(self) -> DaemonConnection:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.logout()
        self.close()
