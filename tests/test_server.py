import json

from fastapi.testclient import TestClient

from cerberus import __version__, commands
from cerberus.auth import AuthService, TokenRegistry
from cerberus.errors import ExecutionFailedError, NotFoundError, ParseFailedError, ValidationError
from cerberus.server import create_app, status_for


def test_status_mapping():
    assert status_for(ValidationError("x")) == 400
    assert status_for(NotFoundError("x")) == 404
    assert status_for(ParseFailedError("x")) == 500
    assert status_for(ExecutionFailedError("x")) == 500
    assert status_for(RuntimeError("x")) == 500


def test_health_is_public(api):
    response = api.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_protected_routes_require_a_token(api):
    assert api.get("/docker/containers").status_code == 401
    response = api.get("/docker/containers", headers={"Authorization": "Bearer forged"})
    assert response.status_code == 401
    assert "error" in response.json()
    assert api.get("/server-details", headers={"Authorization": "Basic abc"}).status_code == 401


def test_login_and_logout(api):
    response = api.post("/login", json={"host": "example.test", "username": "deploy", "password": "secret"})
    assert response.status_code == 200
    token = response.json()["token"]
    headers = {"Authorization": f"Bearer {token}"}

    assert api.post("/logout", headers=headers).status_code == 200
    assert api.post("/logout", headers=headers).status_code == 401


def test_login_rejects_bad_password(api):
    response = api.post("/login", json={"host": "example.test", "username": "deploy", "password": "nope"})
    assert response.status_code == 401
    assert response.json() == {"error": "invalid credentials"}


def test_login_missing_fields_is_bad_request(api):
    response = api.post("/login", json={"host": "example.test"})
    assert response.status_code == 400
    assert "username" in response.json()["error"]


def test_containers(api, headers, fake_client):
    fake_client.on(commands.DOCKER_PS, stdout="abc|nginx|nginx -g|1 hour ago|Up 1 hour|80/tcp|web\n")
    response = api.get("/docker/containers", headers=headers)
    assert response.status_code == 200
    assert response.json() == [
        {
            "container_id": "abc",
            "image": "nginx",
            "command": "nginx -g",
            "created": "1 hour ago",
            "status": "Up 1 hour",
            "ports": "80/tcp",
            "names": "web",
        }
    ]


def test_container_detail_serializes_timestamps(api, headers, fake_client):
    document = [{"Id": "abc", "Name": "/web", "Created": "2024-03-01T10:00:00Z"}]
    fake_client.on(commands.inspect_container("web"), stdout=json.dumps(document))
    body = api.get("/docker/container/web", headers=headers).json()
    assert body["name"] == "web"
    assert body["created"].startswith("2024-03-01T10:00:00")
    assert body["state"]["started_at"] is None


def test_missing_image_is_404(api, headers, fake_client):
    fake_client.on(commands.inspect_image("ghost"), stdout="[]\n", stderr="Error: No such image: ghost\n", exit_status=1)
    response = api.get("/docker/image/ghost", headers=headers)
    assert response.status_code == 404


def test_run_container_created(api, headers, fake_client):
    fake_client.on_prefix("docker run -d", stdout="abc123\n")
    fake_client.on(commands.container_status("abc123"), stdout="running\n")
    response = api.post(
        "/docker/image/run",
        headers=headers,
        json={"image": "nginx", "name": "web", "ports": [{"container_port": 80, "host_port": 8080}]},
    )
    assert response.status_code == 201
    assert response.json()["container_id"] == "abc123"
    assert "docker run -d --name 'web' -p '8080:80' nginx" in fake_client.commands


def test_run_container_bad_restart_is_400(api, headers, fake_client):
    response = api.post("/docker/image/run", headers=headers, json={"image": "nginx", "restart": "sometimes"})
    assert response.status_code == 400
    assert fake_client.commands == []


def test_delete_image_conflict_is_not_an_error(api, headers, fake_client):
    fake_client.on(
        "docker rmi -f nginx",
        stderr="Error response from daemon: conflict: unable to delete nginx (cannot be forced)\n",
        exit_status=1,
    )
    response = api.delete("/docker/image/nginx?force=true", headers=headers)
    assert response.status_code == 200
    assert response.json()["errors"]


def test_execution_failure_is_500(api, headers, fake_client):
    fake_client.on(commands.PROCESSES, stderr="ps: broken\n", exit_status=1)
    response = api.get("/server-details/running-processes", headers=headers)
    assert response.status_code == 500
    assert "ps aux" in response.json()["error"]


def test_filesystem_search_requires_pattern(api, headers):
    assert api.get("/filesystem/search?path=/srv", headers=headers).status_code == 400


def test_filesystem_list(api, headers, fake_client):
    fake_client.on(commands.list_directory("/etc"), stdout="-rw-r--r-- 1 root root 12 Jan 2 2020 hosts\n")
    body = api.get("/filesystem/list?path=/etc", headers=headers).json()
    assert body["path"] == "/etc"
    assert body["entries"][0]["name"] == "hosts"
    assert body["entries"][0]["kind"] == "file"
    modified_at = body["entries"][0]["modified_at"]
    assert modified_at.startswith("2020-01-02T00:00:00")
    assert modified_at[len("2020-01-02T00:00:00"):] in ("Z", "+00:00")


def test_filesystem_recursive_list_of_missing_root_is_404(api, headers, fake_client):
    fake_client.on(commands.stat_entry("/nope"), stderr="stat: cannot stat '/nope'\n", exit_status=1)
    response = api.get("/filesystem/list?path=/nope&recursive=true", headers=headers)
    assert response.status_code == 404
    assert response.json() == {"error": "path not found: /nope"}


def test_expired_login_releases_its_session(directory, session_factory):
    tokens = TokenRegistry(ttl_seconds=0)
    client = TestClient(create_app(directory, tokens, AuthService(directory, tokens, session_factory=session_factory)))
    login = client.post("/login", json={"host": "example.test", "username": "deploy", "password": "secret"}).json()
    assert login["session_id"] in directory

    response = client.post("/logout", headers={"Authorization": f"Bearer {login['token']}"})
    assert response.status_code == 401
    assert login["session_id"] not in directory


def test_health_does_not_report_sessions(api):
    assert api.get("/health").json() == {"status": "ok", "version": __version__}
