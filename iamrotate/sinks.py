"""
iamrotate credential sinks.

A sink receives a newly minted access key. Three destinations are
supported: a local JSON file, the local AWS CLI profile, and a CircleCI
context. Sinks raise PersistError on failure and never put the secret in
an error message or a log line.
"""

import json
import logging
import os
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional, Union

import httpx

from iamrotate.config import CIRCLECI_API_URL, HTTP_TIMEOUT, PROFILE_COMMAND_TIMEOUT
from iamrotate.errors import PersistError
from iamrotate.models import CredentialPair

logger = logging.getLogger(__name__)

KEY_VAR_NAME = "AWS_ACCESS_KEY_ID"
SECRET_VAR_NAME = "AWS_SECRET_ACCESS_KEY"


class CredentialSinkInterface(ABC):
    """Abstract interface for a destination of new credentials."""

    name: str = "sink"

    @abstractmethod
    def write(self, pair: CredentialPair) -> None:
        """Store the pair. Raises PersistError."""
        pass


class FileSink(CredentialSinkInterface):
    """
    Writes the pair to a JSON file.

    File contents:
        {"aws_access_key_id": "...", "aws_secret_access_key": "...", "username": "..."}
    """

    name = "file"

    def __init__(self, path: Union[str, Path], mode: int = 0o600):
        self.path = Path(path)
        self.mode = mode

    def write(self, pair: CredentialPair) -> None:
        try:
            content = json.dumps(pair.to_dict())
        except (TypeError, ValueError) as e:
            raise PersistError(self.name, f"problem translating the new access key to JSON: {e}") from e

        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, self.mode)
            with os.fdopen(fd, "w") as handle:
                handle.write(content)
            # os.open only applies the mode to new files
            os.chmod(self.path, self.mode)
        except OSError as e:
            raise PersistError(
                self.name, f"problem writing the new access key to a file: {e}"
            ) from e

        logger.info(f"wrote new access key {pair.id} to {self.path}")

    @staticmethod
    def read(path: Union[str, Path]) -> CredentialPair:
        """Load a pair previously written by this sink."""
        return CredentialPair.from_dict(json.loads(Path(path).read_text()))


class ProfileSink(CredentialSinkInterface):
    """
    Saves the pair into the local AWS CLI credentials via ``aws configure set``.

    The profile defaults to ``$AWS_PROFILE`` and then to ``default``.
    """

    name = "profile"

    def __init__(
        self,
        profile: Optional[str] = None,
        runner: Optional[Callable[..., subprocess.CompletedProcess]] = None,
        aws_command: str = "aws",
        timeout: float = PROFILE_COMMAND_TIMEOUT,
    ):
        self.profile = profile or os.environ.get("AWS_PROFILE") or "default"
        self._run = runner or subprocess.run
        self._aws = aws_command
        self._timeout = timeout

    def _configure_set(self, setting: str, value: str) -> None:
        command = [self._aws, "configure", "set", setting, value, "--profile", self.profile]
        try:
            result = self._run(command, capture_output=True, text=True, timeout=self._timeout)
        except subprocess.TimeoutExpired as e:
            # str(e) would include the command line, secret included
            raise PersistError(
                self.name, f"aws configure set {setting} timed out after {self._timeout}s"
            ) from e
        except OSError as e:
            raise PersistError(
                self.name, f"failed to run aws configure set {setting}: {e.strerror or e}"
            ) from e

        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            raise PersistError(
                self.name,
                f"aws configure set {setting} exited with code {result.returncode}: {output}",
            )

    def write(self, pair: CredentialPair) -> None:
        self._configure_set("aws_access_key_id", pair.id)
        self._configure_set("aws_secret_access_key", pair.secret)
        logger.info(f"saved new access key {pair.id} to local profile {self.profile!r}")


class CircleCIContextSink(CredentialSinkInterface):
    """
    Updates AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY in a CircleCI context.

    Example:
        >>> sink = CircleCIContextSink(token="...", context_id="6f1c...")
        >>> sink.write(pair)
    """

    name = "circleci"

    def __init__(
        self,
        token: str,
        context_id: str,
        client: Optional[httpx.Client] = None,
        api_url: str = CIRCLECI_API_URL,
        timeout: float = HTTP_TIMEOUT,
    ):
        if not token:
            raise ValueError("CircleCIContextSink requires a token")
        if not context_id:
            raise ValueError("CircleCIContextSink requires a context id")
        self._token = token
        self.context_id = context_id
        self.api_url = api_url.rstrip("/")
        self._client = client
        self._timeout = timeout

    def _url(self, name: str) -> str:
        return f"{self.api_url}/context/{self.context_id}/environment-variable/{name}"

    def _headers(self) -> dict:
        return {
            "content-type": "application/json",
            "authorization": f"Basic {self._token}",
            "Circle-Token": self._token,
        }

    def update_variable(self, client: httpx.Client, name: str, value: str) -> None:
        """PUT one context environment variable; anything but 200 fails."""
        try:
            response = client.put(self._url(name), json={"value": value}, headers=self._headers())
        except httpx.HTTPError as e:
            raise PersistError(self.name, f"failed to update context variable {name}: {e}") from e

        if response.status_code != 200:
            raise PersistError(self.name, f"failed to update context: {response.text}")
        logger.debug(f"updated CircleCI context variable {name}")

    def write(self, pair: CredentialPair) -> None:
        if self._client is not None:
            self.update_variable(self._client, KEY_VAR_NAME, pair.id)
            self.update_variable(self._client, SECRET_VAR_NAME, pair.secret)
        else:
            with httpx.Client(timeout=self._timeout) as client:
                self.update_variable(client, KEY_VAR_NAME, pair.id)
                self.update_variable(client, SECRET_VAR_NAME, pair.secret)
        logger.info(f"saved new access key {pair.id} to CircleCI context {self.context_id}")
