"""Shell command strings for every remote operation.

Constants are fixed strings. Builders interpolate only values that have been
through ``cerberus.sanitize`` first.
"""

from typing import List

from cerberus.config import DOCKER_IMAGES_FORMAT, DOCKER_PS_FORMAT, STAT_FORMAT
from cerberus.errors import ValidationError
from cerberus.models import PORT_PROTOCOLS, RESTART_POLICIES, ContainerRunRequest
from cerberus.sanitize import (
    canonical_path,
    quote_arg,
    sanitize_container_name,
    sanitize_env_key,
    sanitize_identifier,
    sanitize_network,
    sanitize_path,
    sanitize_port,
)

# ========= Host facts =========
HOSTNAME = "hostname"
UNAME_ALL = "uname -a"
UNAME_KERNEL = "uname -r"
UPTIME = "uptime"
CPU_INFO = "cat /proc/cpuinfo"
DISK_USAGE = "df -h"
MEMORY_USAGE = "free -h"
PROCESSES = "ps aux"
OS_RELEASE_ID = "grep -E '^ID=' /etc/os-release | cut -d'=' -f2 | tr -d '\"'"

DPKG_PACKAGES = "dpkg-query -W -f='${Package} ${Version} ${Status} ${Architecture}\\n'"
RPM_PACKAGES = "rpm -qa --queryformat '%{NAME} %{VERSION} installed %{ARCH}\\n'"
PACMAN_PACKAGES = "pacman -Q | awk -v arch=\"$(uname -m)\" '{print $1 \" \" $2 \" installed \" arch}'"

PACKAGE_COMMANDS = {
    "dpkg": DPKG_PACKAGES,
    "rpm": RPM_PACKAGES,
    "pacman": PACMAN_PACKAGES,
}

# Probe order when the distribution is not recognised.
PACKAGE_PROBES = (("apt", "dpkg"), ("rpm", "rpm"), ("pacman", "pacman"))

# ========= Docker =========
DOCKER_PS = f"docker ps -a --format '{DOCKER_PS_FORMAT}'"
DOCKER_IMAGES = f"docker images --format '{DOCKER_IMAGES_FORMAT}'"


def probe_tool(tool: str) -> str:
    if tool not in {probe for probe, _ in PACKAGE_PROBES}:
        raise ValidationError(f"unsupported tool probe: {tool}")
    return f"command -v {tool} >/dev/null 2>&1 && echo found || echo missing"


def inspect_container(container_id: str) -> str:
    return f"docker inspect --type container {sanitize_identifier(container_id)}"


def inspect_image(image_id: str) -> str:
    return f"docker image inspect {sanitize_identifier(image_id)}"


def container_status(container_id: str) -> str:
    return f"docker inspect --format '{{{{.State.Status}}}}' {sanitize_identifier(container_id)}"


def remove_image(image_id: str, force: bool = False) -> str:
    command = "docker rmi"
    if force:
        command += " -f"
    return f"{command} {sanitize_identifier(image_id)}"


def remove_container(container_id: str, force: bool = False) -> str:
    command = "docker rm"
    if force:
        command += " -f"
    return f"{command} {sanitize_identifier(container_id)}"


def validate_run_request(request: ContainerRunRequest) -> None:
    if not request.image or not sanitize_identifier(request.image):
        raise ValidationError("image is required")
    if request.restart and request.restart not in RESTART_POLICIES:
        raise ValidationError(f"invalid restart policy: {request.restart}")
    for port in request.ports:
        if not sanitize_port(port.container_port):
            raise ValidationError("container port is required for port mapping")
        if port.protocol and port.protocol not in PORT_PROTOCOLS:
            raise ValidationError(f"invalid port protocol: {port.protocol}")
    for volume in request.volumes:
        if not volume.host_path or not volume.container_path:
            raise ValidationError("both host path and container path are required for volume mapping")


def run_container(request: ContainerRunRequest) -> str:
    validate_run_request(request)

    parts: List[str] = ["docker run"]
    if request.detached:
        parts.append("-d")

    name = sanitize_container_name(request.name)
    if name:
        parts.append(f"--name {quote_arg(name)}")
    if request.restart:
        parts.append(f"--restart={request.restart}")
    network = sanitize_network(request.network)
    if network:
        parts.append(f"--network={network}")

    for port in request.ports:
        spec = sanitize_port(port.container_port)
        host_port = sanitize_port(port.host_port)
        if host_port:
            spec = f"{host_port}:{spec}"
        if port.protocol and port.protocol != "tcp":
            spec += f"/{port.protocol}"
        parts.append(f"-p {quote_arg(spec)}")

    for volume in request.volumes:
        spec = f"{canonical_path(volume.host_path)}:{canonical_path(volume.container_path)}"
        if volume.read_only:
            spec += ":ro"
        parts.append(f"-v {quote_arg(spec)}")

    for key, value in request.environment.items():
        parts.append(f"-e {sanitize_env_key(key)}={quote_arg(value)}")

    parts.append(sanitize_identifier(request.image))
    parts.extend(quote_arg(arg) for arg in request.command)
    return " ".join(parts)


# ========= Filesystem =========
def list_directory(path: str, include_hidden: bool = False) -> str:
    flags = "-la" if include_hidden else "-l"
    return f"LC_ALL=C ls {flags} {sanitize_path(path)}"


def find_entries(path: str, include_hidden: bool = False) -> str:
    target = sanitize_path(path)
    kinds = "\\( -type f -o -type d -o -type l \\)"
    if include_hidden:
        return f"find {target} -mindepth 1 {kinds} -print"
    return f"find {target} -mindepth 1 -name '.*' -prune -o {kinds} -print"


def stat_entry(path: str) -> str:
    return f"LC_ALL=C stat -c '{STAT_FORMAT}' {sanitize_path(path)}"


def mime_type(path: str) -> str:
    return f"file --mime-type -b {sanitize_path(path)}"


def preview(path: str, lines: int) -> str:
    return f"head -n {int(lines)} {sanitize_path(path)}"


def search_by_name(path: str, pattern: str, max_depth: int) -> str:
    glob = quote_arg(f"*{pattern}*")
    return (
        f"find {sanitize_path(path)} -maxdepth {int(max_depth)} "
        f"\\( -type f -o -type d \\) -name {glob} 2>/dev/null"
    )


def search_by_content(path: str, pattern: str, max_depth: int) -> str:
    return (
        f"find {sanitize_path(path)} -maxdepth {int(max_depth)} -type f "
        f"-exec grep -l -I -e {quote_arg(pattern)} {{}} + 2>/dev/null"
    )
