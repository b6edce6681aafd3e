"""Server configuration for password authenticated SSH servers."""

from __future__ import annotations

from dataclasses import dataclass, field

import paramiko

_HOST_KEY_BITS = 2048


def check_credentials(
    expected_username: str, expected_password: str, username: str, password: str
) -> None:
    """Raise PermissionError unless the credentials match the expected ones."""
    if username == expected_username and password == expected_password:
        return
    raise PermissionError(f'password rejected for "{username}"')


@dataclass
class ServerConfig:
    """Credentials accepted by the server, and the host key it presents."""

    username: str
    password: str = field(repr=False)
    host_key: paramiko.PKey = field(repr=False)

    def check_credentials(self, username: str, password: str) -> None:
        """Raise PermissionError unless the credentials are the configured ones."""
        check_credentials(self.username, self.password, username, password)


def password_config(username: str, password: str) -> ServerConfig:
    """Build a configuration accepting the given credentials, with a fresh RSA host key."""
    host_key = paramiko.RSAKey.generate(_HOST_KEY_BITS)
    return ServerConfig(username=username, password=password, host_key=host_key)