"""
Unit tests for credential sinks.
"""

import json
import os
import stat
import subprocess
from unittest.mock import MagicMock

import httpx
import pytest

from iamrotate import CredentialPair, PersistError
from iamrotate.sinks import CircleCIContextSink, FileSink, ProfileSink


@pytest.fixture
def pair() -> CredentialPair:
    return CredentialPair(id="AKIANEW", secret="wJalrXUtnFEMI/K7MDENG", owner_username="deploy-bot")


class TestFileSink:
    """Tests for FileSink."""

    def test_round_trip(self, tmp_path, pair):
        """A written pair reads back unchanged."""
        path = tmp_path / "new-aws-access-key.json"
        FileSink(path).write(pair)

        assert FileSink.read(path) == pair

    def test_json_shape(self, tmp_path, pair):
        """The file holds exactly the three documented fields."""
        path = tmp_path / "key.json"
        FileSink(path).write(pair)

        assert json.loads(path.read_text()) == {
            "aws_access_key_id": "AKIANEW",
            "aws_secret_access_key": "wJalrXUtnFEMI/K7MDENG",
            "username": "deploy-bot",
        }

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_file_mode(self, tmp_path, pair):
        """The file is readable by its owner only."""
        path = tmp_path / "key.json"
        FileSink(path).write(pair)

        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_unwritable_path(self, tmp_path, pair):
        """A missing directory is a PersistError without the secret."""
        sink = FileSink(tmp_path / "missing" / "key.json")

        with pytest.raises(PersistError, match="problem writing") as exc_info:
            sink.write(pair)
        assert exc_info.value.sink == "file"
        assert pair.secret not in str(exc_info.value)


class TestProfileSink:
    """Tests for ProfileSink."""

    def test_runs_aws_configure(self, pair):
        """Both settings are written to the chosen profile."""
        runner = MagicMock(return_value=subprocess.CompletedProcess([], 0, "", ""))
        ProfileSink(profile="ci", runner=runner).write(pair)

        commands = [c.args[0] for c in runner.call_args_list]
        assert commands == [
            ["aws", "configure", "set", "aws_access_key_id", "AKIANEW", "--profile", "ci"],
            [
                "aws", "configure", "set", "aws_secret_access_key",
                "wJalrXUtnFEMI/K7MDENG", "--profile", "ci",
            ],
        ]

    def test_profile_from_environment(self, monkeypatch):
        """$AWS_PROFILE is used when no profile is given."""
        monkeypatch.setenv("AWS_PROFILE", "from-env")
        assert ProfileSink().profile == "from-env"

    def test_default_profile(self, monkeypatch):
        """Without a profile or $AWS_PROFILE, the default profile is used."""
        monkeypatch.delenv("AWS_PROFILE", raising=False)
        assert ProfileSink().profile == "default"

    def test_nonzero_exit(self, pair):
        """A failing aws command stops after the first setting."""
        runner = MagicMock(
            return_value=subprocess.CompletedProcess([], 255, "", "could not write config")
        )

        with pytest.raises(PersistError, match="exited with code 255") as exc_info:
            ProfileSink(profile="ci", runner=runner).write(pair)

        assert runner.call_count == 1
        assert "could not write config" in str(exc_info.value)

    def test_secret_not_in_error(self, pair):
        """A failure while setting the secret does not echo it."""
        runner = MagicMock(
            side_effect=[
                subprocess.CompletedProcess([], 0, "", ""),
                subprocess.CompletedProcess([], 1, "", "denied"),
            ]
        )

        with pytest.raises(PersistError) as exc_info:
            ProfileSink(profile="ci", runner=runner).write(pair)
        assert pair.secret not in str(exc_info.value)

    def test_missing_aws_binary(self, pair):
        """A missing aws CLI is a PersistError."""
        runner = MagicMock(side_effect=FileNotFoundError("aws"))

        with pytest.raises(PersistError, match="failed to run"):
            ProfileSink(profile="ci", runner=runner).write(pair)


class TestCircleCIContextSink:
    """Tests for CircleCIContextSink."""

    def make_client(self, status_code=200, body=""):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(status_code, text=body)

        return httpx.Client(transport=httpx.MockTransport(handler)), requests

    def test_updates_both_variables(self, pair):
        """The key id and secret are PUT to the context."""
        client, requests = self.make_client()
        sink = CircleCIContextSink(token="tok", context_id="ctx-1", client=client)

        sink.write(pair)

        assert [r.method for r in requests] == ["PUT", "PUT"]
        assert [r.url.path for r in requests] == [
            "/api/v2/context/ctx-1/environment-variable/AWS_ACCESS_KEY_ID",
            "/api/v2/context/ctx-1/environment-variable/AWS_SECRET_ACCESS_KEY",
        ]
        assert json.loads(requests[0].content) == {"value": "AKIANEW"}
        assert json.loads(requests[1].content) == {"value": "wJalrXUtnFEMI/K7MDENG"}

    def test_headers(self, pair):
        """Requests carry the token and a JSON content type."""
        client, requests = self.make_client()
        CircleCIContextSink(token="tok", context_id="ctx-1", client=client).write(pair)

        headers = requests[0].headers
        assert headers["content-type"] == "application/json"
        assert headers["authorization"] == "Basic tok"
        assert headers["circle-token"] == "tok"

    def test_non_200_surfaces_body(self, pair):
        """Anything but 200 fails with the response body."""
        client, requests = self.make_client(status_code=400, body="err")
        sink = CircleCIContextSink(token="tok", context_id="ctx-1", client=client)

        with pytest.raises(PersistError) as exc_info:
            sink.write(pair)

        assert exc_info.value.reason == "failed to update context: err"
        assert len(requests) == 1

    def test_transport_error(self, pair):
        """Connection failures are PersistErrors."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        sink = CircleCIContextSink(token="tok", context_id="ctx-1", client=client)

        with pytest.raises(PersistError, match="connection refused"):
            sink.write(pair)

    def test_custom_api_url(self, pair):
        """The API base URL can be overridden."""
        client, requests = self.make_client()
        CircleCIContextSink(
            token="tok", context_id="c", client=client, api_url="http://circle.test/api/v2/"
        ).write(pair)

        assert str(requests[0].url) == (
            "http://circle.test/api/v2/context/c/environment-variable/AWS_ACCESS_KEY_ID"
        )

    def test_requires_token_and_context(self):
        """Both the token and the context id are required."""
        with pytest.raises(ValueError):
            CircleCIContextSink(token="", context_id="c")
        with pytest.raises(ValueError):
            CircleCIContextSink(token="t", context_id="")
