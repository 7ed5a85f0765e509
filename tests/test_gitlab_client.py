"""Tests for the GitLab REST client."""
from unittest.mock import Mock, patch

import pytest
import requests

from pipeseed.core.config import PipeseedConfig
from pipeseed.services.gitlab.client import (
    GitLabAuthError,
    GitLabClient,
    GitLabConflictError,
    GitLabError,
    GitLabNotFoundError,
    GitLabServerError,
    encode_ref,
)


def _response(status=200, payload=None, headers=None, content=b""):
    response = Mock()
    response.status_code = status
    response.json.return_value = payload if payload is not None else {}
    response.headers = headers or {}
    response.content = content
    response.text = str(payload)
    return response


def _client(*responses, **kwargs):
    session = Mock()
    session.headers = {}
    session.request.side_effect = list(responses)
    return GitLabClient("https://gitlab.example.com/", "tok", session=session, **kwargs), session


class TestTransport:
    """Authentication, TLS and status mapping."""

    def test_token_and_verify_on_session(self):
        client, session = _client(ssl_verify="/etc/ssl/corp.pem")
        assert session.headers["PRIVATE-TOKEN"] == "tok"
        assert session.verify == "/etc/ssl/corp.pem"
        assert client.api_url == "https://gitlab.example.com/api/v4"

    def test_from_config(self):
        config = PipeseedConfig(gitlab_url="https://git.corp", gitlab_token="abc", verify_ssl=False)
        session = Mock()
        session.headers = {}
        client = GitLabClient.from_config(config, session=session)
        assert client.api_url == "https://git.corp/api/v4"
        assert session.headers["PRIVATE-TOKEN"] == "abc"
        assert session.verify is False

    @pytest.mark.parametrize("status,error", [
        (401, GitLabAuthError),
        (403, GitLabAuthError),
        (404, GitLabNotFoundError),
        (409, GitLabConflictError),
        (422, GitLabError),
    ])
    def test_status_mapping(self, status, error):
        client, _ = _client(_response(status, {"message": "nope"}))
        with pytest.raises(error):
            client.create_group("spi", "spi", parent_id=1)

    def test_400_taken_is_conflict(self):
        client, _ = _client(_response(400, {"message": {"path": ["has already been taken"]}}))
        with pytest.raises(GitLabConflictError):
            client.create_project("ci-otpapi", 42)

    def test_400_other_is_plain_error(self):
        client, _ = _client(_response(400, {"message": "name is invalid"}))
        with pytest.raises(GitLabError) as exc_info:
            client.create_project("ci-otpapi", 42)
        assert not isinstance(exc_info.value, GitLabConflictError)

    def test_server_error(self):
        client, _ = _client(_response(502, {"message": "bad gateway"}))
        with pytest.raises(GitLabServerError):
            client.get_project(1)

    @patch('pipeseed.core.retry.time.sleep')
    def test_retries_transient_failures(self, mock_sleep):
        client, session = _client(
            requests.ConnectionError("reset"),
            _response(503),
            _response(200, {"id": 7, "name": "ci-otpapi", "namespace": {"id": 42}}),
            retry_attempts=3,
        )
        project = client.get_project(7)
        assert project.id == 7
        assert session.request.call_count == 3


class TestGroupsAndProjects:
    """Group and project endpoints."""

    def test_encode_ref(self):
        assert encode_ref("devops/pipeline-template/ci") == "devops%2Fpipeline-template%2Fci"
        assert encode_ref(42) == "42"

    def test_get_group_found(self):
        client, session = _client(_response(200, {
            "id": 11, "name": "ci", "path": "ci",
            "full_path": "devops/pipeline-template/ci", "parent_id": 10,
        }))
        group = client.get_group("devops/pipeline-template/ci")

        assert group.id == 11
        assert group.parent_id == 10
        url = session.request.call_args[0][1]
        assert url.endswith("/groups/devops%2Fpipeline-template%2Fci")

    def test_get_group_missing(self):
        client, _ = _client(_response(404, {"message": "404 Group Not Found"}))
        assert client.get_group("nope") is None

    def test_create_group_payload(self):
        client, session = _client(_response(201, {"id": 12, "path": "spi", "full_path": "a/spi"}))
        client.create_group("spi", "spi", parent_id=11)
        assert session.request.call_args[1]["json"] == {"name": "spi", "path": "spi", "parent_id": 11}

    def test_create_project(self):
        client, session = _client(_response(201, {
            "id": 99, "name": "ci-otpapi", "namespace": {"id": 42},
            "ssh_url_to_repo": "git@gitlab.example.com:g/ci-otpapi.git",
            "http_url_to_repo": "https://gitlab.example.com/g/ci-otpapi.git",
        }))
        project = client.create_project("ci-otpapi", 42)

        assert project.namespace_id == 42
        assert project.push_url() == "git@gitlab.example.com:g/ci-otpapi.git"
        assert project.push_url(prefer_ssh=False) == "https://gitlab.example.com/g/ci-otpapi.git"
        payload = session.request.call_args[1]["json"]
        assert payload["namespace_id"] == 42
        assert payload["path"] == "ci-otpapi"

    def test_delete_missing_project(self):
        client, _ = _client(_response(404))
        assert client.delete_project(5) is False


class TestPagination:
    """Paged listing."""

    def test_stops_on_empty_page(self):
        client, session = _client(
            _response(200, [{"id": 1}, {"id": 2}]),
            _response(200, [{"id": 3}]),
            _response(200, []),
        )
        items = list(client.list_group_projects(5))

        assert [i["id"] for i in items] == [1, 2, 3]
        pages = [c[1]["params"]["page"] for c in session.request.call_args_list]
        assert pages == [1, 2, 3]
        assert session.request.call_args_list[0][1]["params"]["per_page"] == 100

    def test_stops_when_no_next_page(self):
        client, session = _client(_response(200, [{"id": 1}], headers={"X-Next-Page": ""}))
        assert len(list(client.list_group_projects(5))) == 1
        assert session.request.call_count == 1

    def test_list_tree(self):
        client, session = _client(
            _response(200, [{"path": "a", "type": "tree"}, {"path": "a/b.txt", "type": "blob"}]),
            _response(200, []),
        )
        entries = client.list_tree(7, ref="main")

        assert len(entries) == 2
        params = session.request.call_args_list[0][1]["params"]
        assert params["recursive"] == "true"
        assert params["ref"] == "main"

    def test_raw_file(self):
        client, session = _client(_response(200, content=b"hello"))
        assert client.get_raw_file(7, "deploy/values.yaml", "main") == b"hello"
        assert session.request.call_args[0][1].endswith("/files/deploy%2Fvalues.yaml/raw")
