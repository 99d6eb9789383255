import json

import pytest

from cerberus import commands
from cerberus.docker import DockerService
from cerberus.errors import ExecutionFailedError, NotFoundError, SessionNotFoundError, ValidationError
from cerberus.fs import FileSystemService
from cerberus.models import KIND_DIRECTORY, KIND_FILE, ContainerRunRequest
from cerberus.system import SystemService, package_manager_for


# ========= System =========
def test_server_details(directory, fake_client):
    fake_client.on(commands.HOSTNAME, stdout="box\n")
    fake_client.on(commands.UNAME_ALL, stdout="Linux box 6.1.0 #1 SMP x86_64 GNU/Linux\n")
    fake_client.on(commands.UNAME_KERNEL, stdout="6.1.0\n")
    fake_client.on(commands.UPTIME, stdout=" 10:00:00 up 3 days,  1 user,  load average: 0.00, 0.01, 0.05\n")
    details = SystemService(directory).details("session-1")
    assert details.hostname == "box"
    assert details.kernel_version == "6.1.0"
    assert details.uptime.startswith("10:00:00 up 3 days")


def test_unknown_session(directory):
    with pytest.raises(SessionNotFoundError):
        SystemService(directory).cpu_info("nope")


def test_packages_from_distro_id(directory, fake_client):
    fake_client.on(commands.OS_RELEASE_ID, stdout="ubuntu\n")
    fake_client.on(commands.DPKG_PACKAGES, stdout="bash 5.1 install ok installed amd64\n")
    (package,) = SystemService(directory).packages("session-1")
    assert package.name == "bash"
    assert package.status == "installed"


def test_packages_fall_back_to_probing(directory, fake_client):
    fake_client.on(commands.OS_RELEASE_ID, exit_status=1)
    fake_client.on(commands.probe_tool("apt"), stdout="missing\n")
    fake_client.on(commands.probe_tool("rpm"), stdout="found\n")
    fake_client.on(commands.RPM_PACKAGES, stdout="openssl 3.0.7 installed x86_64\n")
    (package,) = SystemService(directory).packages("session-1")
    assert package.architecture == "x86_64"
    assert commands.probe_tool("pacman") not in fake_client.commands


def test_no_package_manager(directory, fake_client):
    fake_client.on(commands.OS_RELEASE_ID, stdout="gentoo\n")
    for tool in ("apt", "rpm", "pacman"):
        fake_client.on(commands.probe_tool(tool), stdout="missing\n")
    with pytest.raises(NotFoundError):
        SystemService(directory).packages("session-1")


def test_package_manager_families():
    assert package_manager_for("debian") == "dpkg"
    assert package_manager_for("rocky") == "rpm"
    assert package_manager_for("opensuse-leap") == "rpm"
    assert package_manager_for("manjaro") == "pacman"
    assert package_manager_for("gentoo") == ""


def test_failed_command_propagates(directory, fake_client):
    fake_client.on(commands.DISK_USAGE, stderr="df: not found\n", exit_status=127)
    with pytest.raises(ExecutionFailedError) as info:
        SystemService(directory).disk_usage("session-1")
    assert info.value.command == "df -h"


# ========= Docker =========
def test_container_not_found(directory, fake_client):
    fake_client.on(
        commands.inspect_container("ghost"),
        stdout="[]\n",
        stderr="Error: No such object: ghost\n",
        exit_status=1,
    )
    with pytest.raises(NotFoundError):
        DockerService(directory).container("session-1", "ghost")


def test_container_detail(directory, fake_client):
    document = [{"Id": "abc", "Name": "/web", "Config": {"Cmd": ["nginx", "-g", "daemon off;"]}}]
    fake_client.on(commands.inspect_container("web"), stdout=json.dumps(document))
    detail = DockerService(directory).container("session-1", "web")
    assert detail.name == "web"
    assert detail.command == ["nginx", "-g", "daemon off;"]


def test_blank_identifier_is_rejected_before_running(directory, fake_client):
    with pytest.raises(ValidationError):
        DockerService(directory).image("session-1", "$(;)")
    assert fake_client.commands == []


def test_delete_image_in_use_reports_errors(directory, fake_client):
    fake_client.on(
        "docker rmi nginx",
        stderr=(
            "Error response from daemon: conflict: unable to delete 605c77e624dd (cannot be forced) - "
            "image is being used by running container 4f2a9c\n"
        ),
        exit_status=1,
    )
    result = DockerService(directory).delete_image("session-1", "nginx")
    assert result.errors
    assert result.deleted == []


def test_delete_image_success(directory, fake_client):
    fake_client.on("docker rmi -f nginx", stdout="Untagged: nginx:latest\nDeleted: sha256:605c\n")
    result = DockerService(directory).delete_image("session-1", "nginx", force=True)
    assert result.untagged == ["nginx:latest"]
    assert result.deleted == ["sha256:605c"]
    assert result.errors == []


def test_delete_missing_image(directory, fake_client):
    fake_client.on("docker rmi ghost", stderr="Error: No such image: ghost\n", exit_status=1)
    with pytest.raises(NotFoundError):
        DockerService(directory).delete_image("session-1", "ghost")


def test_delete_image_unrecognised_failure(directory, fake_client):
    fake_client.on("docker rmi nginx", stderr="Cannot connect to the Docker daemon\n", exit_status=1)
    with pytest.raises(ExecutionFailedError):
        DockerService(directory).delete_image("session-1", "nginx")


def test_run_container_detached(directory, fake_client):
    fake_client.on_prefix("docker run -d", stdout="abc123\n", stderr="WARNING: memory limit ignored\n")
    fake_client.on(commands.container_status("abc123"), stdout="running\n")
    result = DockerService(directory).run_container("session-1", ContainerRunRequest(image="nginx", name="web"))
    assert result.container_id == "abc123"
    assert result.name == "web"
    assert result.status == "running"
    assert result.warnings == ["WARNING: memory limit ignored"]


def test_run_container_status_defaults_to_created(directory, fake_client):
    fake_client.on_prefix("docker run -d", stdout="abc123\n")
    fake_client.on(commands.container_status("abc123"), exit_status=1)
    result = DockerService(directory).run_container("session-1", ContainerRunRequest(image="nginx"))
    assert result.status == "created"


def test_run_container_attached_returns_output(directory, fake_client):
    fake_client.on("docker run alpine 'echo' 'hi'", stdout="hi\n")
    result = DockerService(directory).run_container(
        "session-1", ContainerRunRequest(image="alpine", detached=False, command=["echo", "hi"])
    )
    assert result.status == "exited"
    assert result.output == "hi\n"


def test_run_container_invalid_restart_never_executes(directory, fake_client):
    with pytest.raises(ValidationError):
        DockerService(directory).run_container("session-1", ContainerRunRequest(image="nginx", restart="often"))
    assert fake_client.commands == []


def test_remove_container(directory, fake_client):
    fake_client.on("docker rm -f web", stdout="web\n")
    result = DockerService(directory).remove_container("session-1", "web", force=True)
    assert result.removed is True
    fake_client.on("docker rm ghost", stderr="Error: No such container: ghost\n", exit_status=1)
    with pytest.raises(NotFoundError):
        DockerService(directory).remove_container("session-1", "ghost")


# ========= Filesystem =========
def test_list_directory(directory, fake_client):
    fake_client.on(
        commands.list_directory("/var"),
        stdout="total 4\ndrwxr-xr-x 2 root root 4096 Jan 2 2020 log\n",
    )
    listing = FileSystemService(directory).list("session-1", "/var/tmp/..")
    assert listing.path == "/var"
    assert listing.recursive is False
    (entry,) = listing.entries
    assert entry.path == "/var/log"
    assert entry.kind == KIND_DIRECTORY


def test_list_missing_directory(directory, fake_client):
    fake_client.on(
        commands.list_directory("/nope"),
        stderr="ls: cannot access '/nope': No such file or directory\n",
        exit_status=2,
    )
    with pytest.raises(NotFoundError):
        FileSystemService(directory).list("session-1", "/nope")


def test_recursive_listing_drops_unstatable_paths(directory, fake_client):
    fake_client.on(commands.stat_entry("/srv"), stdout="/srv|directory|4096|u|g|drwxr-xr-x|0\n")
    fake_client.on(
        commands.find_entries("/srv"),
        stdout="/srv/a\n/srv/gone\n/srv/b\n",
        stderr="find: '/srv/private': Permission denied\n",
        exit_status=1,
    )
    fake_client.on(commands.stat_entry("/srv/a"), stdout="/srv/a|regular file|3|u|g|-rw-r--r--|0\n")
    fake_client.on(commands.stat_entry("/srv/gone"), stderr="stat: cannot stat\n", exit_status=1)
    fake_client.on(commands.stat_entry("/srv/b"), stdout="/srv/b|directory|4096|u|g|drwxr-xr-x|0\n")
    listing = FileSystemService(directory).list("session-1", "/srv", recursive=True)
    assert [entry.path for entry in listing.entries] == ["/srv/a", "/srv/b"]
    assert listing.recursive is True


def test_file_details_with_preview(directory, fake_client):
    fake_client.on(commands.stat_entry("/etc/hosts"), stdout="/etc/hosts|regular file|12|root|root|-rw-r--r--|0\n")
    fake_client.on(commands.mime_type("/etc/hosts"), stdout="text/plain\n")
    fake_client.on(commands.preview("/etc/hosts", 10), stdout="127.0.0.1 localhost\n")
    entry = FileSystemService(directory).details("session-1", "/etc/hosts")
    assert entry.kind == KIND_FILE
    assert entry.mime_type == "text/plain"
    assert entry.preview == "127.0.0.1 localhost\n"


def test_binary_file_has_no_preview(directory, fake_client):
    fake_client.on(commands.stat_entry("/bin/ls"), stdout="/bin/ls|regular file|9|root|root|-rwxr-xr-x|0\n")
    fake_client.on(commands.mime_type("/bin/ls"), stdout="application/x-pie-executable\n")
    entry = FileSystemService(directory).details("session-1", "/bin/ls")
    assert entry.preview is None
    assert commands.preview("/bin/ls", 10) not in fake_client.commands


def test_details_of_missing_path(directory, fake_client):
    fake_client.on(commands.stat_entry("/nope"), stderr="stat: cannot stat '/nope'\n", exit_status=1)
    with pytest.raises(NotFoundError):
        FileSystemService(directory).details("session-1", "/nope")


def test_search_unions_name_and_content_matches(directory, fake_client):
    fake_client.on(commands.stat_entry("/srv"), stdout="/srv|directory|4096|u|g|drwxr-xr-x|0\n")
    fake_client.on(commands.search_by_name("/srv", "conf", 10), stdout="/srv/app.conf\n/srv/conf.d\n")
    fake_client.on(commands.search_by_content("/srv", "conf", 10), stdout="/srv/app.conf\n/srv/readme\n", exit_status=1)
    for path, kind in (("/srv/app.conf", "regular file"), ("/srv/conf.d", "directory"), ("/srv/readme", "regular file")):
        fake_client.on(commands.stat_entry(path), stdout=f"{path}|{kind}|1|u|g|-rw-r--r--|0\n")
    results = FileSystemService(directory).search("session-1", "/srv", "conf")
    assert [entry.path for entry in results] == ["/srv/app.conf", "/srv/conf.d", "/srv/readme"]


def test_search_requires_pattern(directory):
    with pytest.raises(ValidationError):
        FileSystemService(directory).search("session-1", "/srv", "")


def test_recursive_listing_of_missing_root(directory, fake_client):
    fake_client.on(commands.stat_entry("/nope"), stderr="stat: cannot stat '/nope': No such file or directory\n", exit_status=1)
    fake_client.on(
        commands.find_entries("/nope"),
        stderr="find: '/nope': No such file or directory\n",
        exit_status=1,
    )
    with pytest.raises(NotFoundError):
        FileSystemService(directory).list("session-1", "/nope", recursive=True)
    assert commands.find_entries("/nope") not in fake_client.commands


def test_search_of_missing_root(directory, fake_client):
    fake_client.on(commands.stat_entry("/nope"), stderr="stat: cannot stat '/nope'\n", exit_status=1)
    with pytest.raises(NotFoundError):
        FileSystemService(directory).search("session-1", "/nope", "conf")
    assert fake_client.commands == [commands.stat_entry("/nope")]
