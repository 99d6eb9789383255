from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

KIND_FILE = "file"
KIND_DIRECTORY = "directory"
KIND_SYMLINK = "symlink"
KIND_UNKNOWN = "unknown"

RESTART_POLICIES = ("no", "always", "on-failure", "unless-stopped")
PORT_PROTOCOLS = ("tcp", "udp")


# ========= Host facts =========
@dataclass
class ServerDetails:
    hostname: str = ""
    os: str = ""
    kernel_version: str = ""
    uptime: str = ""


@dataclass
class CPUInfo:
    processor: str = ""
    vendor_id: str = ""
    cpu_family: str = ""
    model: str = ""
    model_name: str = ""
    stepping: str = ""
    microcode: str = ""
    cpu_mhz: str = ""
    cache_size: str = ""
    physical_id: str = ""
    siblings: str = ""
    core_id: str = ""
    cpu_cores: str = ""
    apicid: str = ""
    initial_apicid: str = ""
    fpu: str = ""
    fpu_exception: str = ""
    cpuid_level: str = ""
    wp: str = ""
    flags: str = ""
    bogomips: str = ""
    clflush_size: str = ""
    cache_alignment: str = ""
    address_sizes: str = ""
    power_management: str = ""


@dataclass
class DiskUsage:
    filesystem: str
    size: str
    used: str
    available: str
    use_percentage: str
    mounted_on: str


@dataclass
class MemoryUsage:
    kind: str
    total: str = ""
    used: str = ""
    free: str = ""
    shared: str = ""
    buff_cache: str = ""
    available: str = ""


@dataclass
class ProcessInfo:
    user: str
    pid: str
    cpu: str
    mem: str
    vsz: str
    rss: str
    tty: str
    stat: str
    start: str
    time: str
    command: str


@dataclass
class PackageInfo:
    name: str
    version: str
    status: str = "unknown"
    architecture: str = "unknown"


# ========= Docker =========
@dataclass
class ContainerSummary:
    container_id: str
    image: str
    command: str = ""
    created: str = ""
    status: str = ""
    ports: str = ""
    names: str = ""


@dataclass
class Mount:
    type: str = ""
    source: str = ""
    destination: str = ""
    mode: str = ""
    rw: bool = False


@dataclass
class PortMapping:
    container_port: str = ""
    host_port: str = ""
    host_ip: str = ""
    protocol: str = ""


@dataclass
class NetworkSettings:
    ip_address: str = ""
    gateway: str = ""
    mac_address: str = ""
    network_name: str = ""
    endpoint_id: str = ""
    network_id: str = ""
    subnet_prefix: str = ""
    port_mappings: List[PortMapping] = field(default_factory=list)


@dataclass
class ContainerState:
    status: str = ""
    running: bool = False
    paused: bool = False
    restarting: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    exit_code: int = 0
    error: str = ""


@dataclass
class HostConfig:
    auto_remove: bool = False
    privileged: bool = False
    publish_all_ports: bool = False
    restart_policy: str = ""
    network_mode: str = ""
    dns: List[str] = field(default_factory=list)
    cap_add: List[str] = field(default_factory=list)
    cap_drop: List[str] = field(default_factory=list)


@dataclass
class ContainerDetail:
    id: str = ""
    name: str = ""
    image: str = ""
    command: List[str] = field(default_factory=list)
    created: Optional[datetime] = None
    status: str = ""
    network_mode: str = ""
    restart_policy: str = ""
    platform: str = ""
    mounts: List[Mount] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=dict)
    network_settings: NetworkSettings = field(default_factory=NetworkSettings)
    state: ContainerState = field(default_factory=ContainerState)
    host_config: HostConfig = field(default_factory=HostConfig)


@dataclass
class ImageSummary:
    repository: str
    tag: str
    image_id: str
    created: str
    size: str
    digest: str = ""


@dataclass
class ImageHistory:
    created: Optional[datetime] = None
    created_by: str = ""
    empty_layer: bool = False
    comment: str = ""


@dataclass
class ImageDetail:
    id: str = ""
    repo_tags: List[str] = field(default_factory=list)
    repo_digests: List[str] = field(default_factory=list)
    created: Optional[datetime] = None
    size: int = 0
    virtual_size: int = 0
    shared_size: int = 0
    architecture: str = ""
    os: str = ""
    author: str = ""
    container: str = ""
    docker_version: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    env: List[str] = field(default_factory=list)
    cmd: List[str] = field(default_factory=list)
    entrypoint: List[str] = field(default_factory=list)
    working_dir: str = ""
    volumes: List[str] = field(default_factory=list)
    exposed_ports: List[str] = field(default_factory=list)
    layers: List[str] = field(default_factory=list)
    history: List[ImageHistory] = field(default_factory=list)


@dataclass
class ImageDeleteResult:
    deleted: List[str] = field(default_factory=list)
    untagged: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class RunPortMapping:
    container_port: str
    host_port: str = ""
    protocol: str = "tcp"


@dataclass
class VolumeMapping:
    host_path: str
    container_path: str
    read_only: bool = False


@dataclass
class ContainerRunRequest:
    image: str
    name: str = ""
    ports: List[RunPortMapping] = field(default_factory=list)
    volumes: List[VolumeMapping] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)
    detached: bool = True
    restart: str = ""
    network: str = ""
    command: List[str] = field(default_factory=list)


@dataclass
class ContainerRunResult:
    container_id: str
    name: str = ""
    status: str = "created"
    warnings: List[str] = field(default_factory=list)
    output: Optional[str] = None


@dataclass
class ContainerRemoveResult:
    container_id: str
    removed: bool = False


# ========= Filesystem =========
@dataclass
class FileSystemEntry:
    name: str
    path: str
    kind: str = KIND_UNKNOWN
    size: int = 0
    permissions: str = ""
    owner: str = ""
    group: str = ""
    modified_at: Optional[datetime] = None
    hidden: bool = False
    mime_type: Optional[str] = None
    preview: Optional[str] = None


@dataclass
class FileSystemListing:
    path: str
    entries: List[FileSystemEntry] = field(default_factory=list)
    recursive: bool = False
