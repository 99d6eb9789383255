"""Text parsers for the output of the remote commands in ``cerberus.commands``.

Every parser is a pure ``text -> records`` function. Lines that do not match
the expected shape are skipped; a parser never fails on a single bad line.
"""

import posixpath
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from cerberus.models import (
    KIND_DIRECTORY,
    KIND_FILE,
    KIND_SYMLINK,
    KIND_UNKNOWN,
    ContainerSummary,
    CPUInfo,
    DiskUsage,
    FileSystemEntry,
    ImageDeleteResult,
    ImageSummary,
    MemoryUsage,
    PackageInfo,
    ProcessInfo,
)
from cerberus.utils import clean_output

_RFC3339 = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[T ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:?\d{2})?$"
)

LS_LINE = re.compile(
    r"^(?P<permissions>[-dlcbpsD][-rwxsStTl]{9}[.+@]?)\s+"
    r"(?P<links>\d+)\s+"
    r"(?P<owner>\S+)\s+"
    r"(?P<group>\S+)\s+"
    r"(?P<size>\d+)\s+"
    r"(?P<month>[A-Za-z]{3})\s+"
    r"(?P<day>\d{1,2})\s+"
    r"(?P<time_or_year>\d{1,2}:\d{2}|\d{4})\s+"
    r"(?P<name>.+)$"
)

_PORT_TOKEN = re.compile(r"(->|/tcp|/udp|/sctp)")

_CPUINFO_FIELDS = {
    "processor": "processor",
    "vendor_id": "vendor_id",
    "cpu family": "cpu_family",
    "model": "model",
    "model name": "model_name",
    "stepping": "stepping",
    "microcode": "microcode",
    "cpu mhz": "cpu_mhz",
    "cache size": "cache_size",
    "physical id": "physical_id",
    "siblings": "siblings",
    "core id": "core_id",
    "cpu cores": "cpu_cores",
    "apicid": "apicid",
    "initial apicid": "initial_apicid",
    "fpu": "fpu",
    "fpu_exception": "fpu_exception",
    "cpuid level": "cpuid_level",
    "wp": "wp",
    "flags": "flags",
    "bogomips": "bogomips",
    "clflush size": "clflush_size",
    "cache_alignment": "cache_alignment",
    "address sizes": "address_sizes",
    "power management": "power_management",
}

_MEMORY_COLUMNS = {
    "total": "total",
    "used": "used",
    "free": "free",
    "shared": "shared",
    "buff/cache": "buff_cache",
    "available": "available",
}


def _lines(text: str) -> List[str]:
    return clean_output(text or "").split("\n")


def parse_rfc3339(value: Optional[str]) -> Optional[datetime]:
    """Docker timestamps carry nanoseconds; Python only keeps microseconds."""
    if not value or not isinstance(value, str):
        return None
    match = _RFC3339.match(value.strip())
    if not match:
        return None
    date_part, time_part, fraction, offset = match.groups()
    fraction = (fraction or "0")[:6].ljust(6, "0")
    if not offset or offset == "Z":
        offset = "+00:00"
    elif ":" not in offset:
        offset = offset[:3] + ":" + offset[3:]
    try:
        parsed = datetime.fromisoformat(f"{date_part}T{time_part}.{fraction}{offset}")
    except ValueError:
        return None
    # Docker reports unset timestamps as the zero time.
    if parsed.year <= 1:
        return None
    return parsed


# ========= Docker: containers =========
def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value.strip('"')


def parse_container_line(line: str) -> Optional[ContainerSummary]:
    """One ``docker ps --format`` line: ID|Image|Command|RunningFor|Status|Ports|Names."""
    head = line.split("|", 2)
    if len(head) < 3:
        return None
    tail = head[2].rsplit("|", 4)
    if len(tail) < 5:
        return None
    container_id, image = head[0].strip(), head[1].strip()
    if not container_id:
        return None
    command, created, status, ports, names = tail
    return ContainerSummary(
        container_id=container_id,
        image=image,
        command=_strip_quotes(command),
        created=created.strip(),
        status=status.strip(),
        ports=ports.strip(),
        names=names.strip(),
    )


def _header_columns(header: str) -> List[Tuple[str, int]]:
    columns = []
    for match in re.finditer(r"\S+(?: \S+)*", header):
        columns.append((match.group(0).upper(), match.start()))
    return columns


def _parse_container_fixed_width(lines: List[str], header: str) -> List[ContainerSummary]:
    columns = _header_columns(header)
    names = [name for name, _ in columns]
    required = ["CONTAINER ID", "IMAGE", "COMMAND", "CREATED", "STATUS", "NAMES"]
    if any(name not in names for name in required):
        return []

    containers = []
    for line in lines:
        if not line.strip():
            continue
        values: Dict[str, str] = {}
        for index, (name, start) in enumerate(columns):
            end = columns[index + 1][1] if index + 1 < len(columns) else None
            values[name] = line[start:end].strip() if end is not None else line[start:].strip()
        if not values.get("CONTAINER ID"):
            continue
        containers.append(
            ContainerSummary(
                container_id=values["CONTAINER ID"],
                image=values.get("IMAGE", ""),
                command=_strip_quotes(values.get("COMMAND", "")),
                created=values.get("CREATED", ""),
                status=values.get("STATUS", ""),
                ports=values.get("PORTS", ""),
                names=values.get("NAMES", ""),
            )
        )
    return containers


def parse_container_row(line: str) -> Optional[ContainerSummary]:
    """Whitespace heuristic for a ``docker ps`` table row without a usable header.

    The quoted command is located by pairing quotes first; the rest of the row
    is then split on whitespace.
    """
    fields = line.split()
    if len(fields) < 4:
        return None
    container_id, image = fields[0], fields[1]

    rest = line.strip()[len(container_id):].lstrip()[len(image):].lstrip()
    command = ""
    open_quote = rest.find('"')
    close_quote = rest.find('"', open_quote + 1) if open_quote == 0 else -1
    if close_quote > 0:
        command = rest[1:close_quote]
        remainder = rest[close_quote + 1:].split()
    else:
        tokens = rest.split()
        command = tokens[0].strip('"') if tokens else ""
        remainder = tokens[1:]

    created_tokens: List[str] = []
    while remainder:
        token = remainder.pop(0)
        created_tokens.append(token)
        if token == "ago":
            break
    if not remainder:
        return ContainerSummary(container_id=container_id, image=image, command=command, created=" ".join(created_tokens))

    names = remainder[-1]
    middle = remainder[:-1]
    port_index = next((i for i, token in enumerate(middle) if _PORT_TOKEN.search(token)), len(middle))
    return ContainerSummary(
        container_id=container_id,
        image=image,
        command=command,
        created=" ".join(created_tokens),
        status=" ".join(middle[:port_index]),
        ports=" ".join(middle[port_index:]),
        names=names,
    )


def parse_containers(text: str) -> List[ContainerSummary]:
    lines = [line for line in _lines(text) if line.strip()]
    if not lines:
        return []

    if lines[0].upper().startswith("CONTAINER ID"):
        containers = _parse_container_fixed_width(lines[1:], lines[0])
        if containers:
            return containers
        rows = [parse_container_row(line) for line in lines[1:]]
        return [row for row in rows if row is not None]

    containers = []
    for line in lines:
        if "|" in line:
            parsed = parse_container_line(line)
        else:
            parsed = parse_container_row(line)
        if parsed is not None:
            containers.append(parsed)
    return containers


# ========= Docker: images =========
def parse_images(text: str) -> List[ImageSummary]:
    """``docker images --format`` lines: Repository|Tag|ID|CreatedSince|Size|Digest."""
    images = []
    for line in _lines(text):
        if not line.strip():
            continue
        parts = line.split("|")
        if len(parts) < 5:
            continue
        images.append(
            ImageSummary(
                repository=parts[0].strip(),
                tag=parts[1].strip(),
                image_id=parts[2].strip(),
                created=parts[3].strip(),
                size=parts[4].strip(),
                digest=parts[5].strip() if len(parts) > 5 else "",
            )
        )
    return images


def parse_image_delete(text: str) -> ImageDeleteResult:
    result = ImageDeleteResult()
    for line in _lines(text):
        line = line.strip()
        if line.startswith("Deleted:"):
            result.deleted.append(line[len("Deleted:"):].strip())
        elif line.startswith("Untagged:"):
            result.untagged.append(line[len("Untagged:"):].strip())
    return result


def parse_delete_conflicts(error_text: str) -> List[str]:
    errors = [line.strip() for line in _lines(error_text) if "conflict:" in line]
    if not errors and "being used by running container" in (error_text or ""):
        errors.append("Cannot delete image that is being used by running containers")
    return errors


def parse_run_output(text: str) -> Tuple[str, List[str]]:
    """``docker run -d`` prints the new container id as its last line."""
    lines = [line.strip() for line in _lines(text) if line.strip()]
    if not lines:
        return "", []
    return lines[-1], lines[:-1]


# ========= Host facts =========
def parse_cpuinfo(text: str) -> List[CPUInfo]:
    cpus: List[CPUInfo] = []
    current: Dict[str, str] = {}

    def flush() -> None:
        if current:
            cpus.append(CPUInfo(**current))
            current.clear()

    for line in _lines(text):
        if not line.strip():
            flush()
            continue
        key, sep, value = line.partition(":")
        if not sep:
            continue
        attribute = _CPUINFO_FIELDS.get(key.strip().lower())
        if attribute is None:
            continue
        current[attribute] = value.strip()
    flush()
    return cpus


def parse_disk_usage(text: str) -> List[DiskUsage]:
    disks = []
    pending = ""
    for line in _lines(text)[1:]:
        fields = line.split()
        if not fields:
            continue
        # Long device names make df wrap the row onto the next line.
        if len(fields) == 1:
            pending = fields[0]
            continue
        if pending and len(fields) >= 5 and fields[3].endswith("%"):
            fields = [pending] + fields
        pending = ""
        if len(fields) < 6:
            continue
        disks.append(
            DiskUsage(
                filesystem=fields[0],
                size=fields[1],
                used=fields[2],
                available=fields[3],
                use_percentage=fields[4],
                mounted_on=" ".join(fields[5:]),
            )
        )
    return disks


def parse_memory(text: str) -> List[MemoryUsage]:
    lines = [line for line in _lines(text) if line.strip()]
    if not lines:
        return []
    header = [_MEMORY_COLUMNS.get(token.lower()) for token in lines[0].split()]

    rows = []
    for line in lines[1:]:
        tokens = line.split()
        label_end = next((i for i, token in enumerate(tokens) if token.endswith(":")), None)
        if label_end is None:
            continue
        kind = " ".join(tokens[: label_end + 1]).rstrip(":").lower()
        values = tokens[label_end + 1:]
        row = MemoryUsage(kind=kind)
        for column, value in zip(header, values):
            if column:
                setattr(row, column, value)
        rows.append(row)
    return rows


def parse_processes(text: str) -> List[ProcessInfo]:
    processes = []
    for line in _lines(text)[1:]:
        fields = line.split()
        if len(fields) < 11:
            continue
        processes.append(
            ProcessInfo(
                user=fields[0],
                pid=fields[1],
                cpu=fields[2],
                mem=fields[3],
                vsz=fields[4],
                rss=fields[5],
                tty=fields[6],
                stat=fields[7],
                start=fields[8],
                time=fields[9],
                command=" ".join(fields[10:]),
            )
        )
    return processes


def parse_packages(text: str) -> List[PackageInfo]:
    """``name version [status words...] arch`` per line."""
    packages = []
    for line in _lines(text):
        fields = line.split()
        if len(fields) < 3:
            continue
        status_words = fields[2:-1]
        if not status_words:
            status = "unknown"
        elif status_words[-1] == "installed":
            status = "installed"
        else:
            status = " ".join(status_words)
        packages.append(
            PackageInfo(
                name=fields[0],
                version=fields[1],
                status=status,
                architecture=fields[-1],
            )
        )
    return packages


def parse_os_release_id(text: str) -> str:
    for line in _lines(text):
        if line.strip():
            return line.strip().strip('"').lower()
    return ""


# ========= Filesystem =========
def _kind_from_permissions(permissions: str) -> str:
    if permissions.startswith("d"):
        return KIND_DIRECTORY
    if permissions.startswith("l"):
        return KIND_SYMLINK
    return KIND_FILE


def _ls_timestamp(month: str, day: str, time_or_year: str, now: datetime) -> Optional[datetime]:
    # ls prints no zone; stamps are read as UTC.
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    try:
        if ":" not in time_or_year:
            return datetime.strptime(f"{month} {day} {time_or_year}", "%b %d %Y").replace(tzinfo=timezone.utc)
        for year in (now.year, now.year - 1):
            try:
                stamp = datetime.strptime(f"{month} {day} {year} {time_or_year}", "%b %d %Y %H:%M").replace(
                    tzinfo=timezone.utc
                )
            except ValueError:
                continue
            if stamp <= now:
                return stamp
        return None
    except ValueError:
        return None


def parse_ls_line(line: str, base_path: str, now: Optional[datetime] = None) -> Optional[FileSystemEntry]:
    match = LS_LINE.match(line.rstrip("\n"))
    if not match:
        return None

    permissions = match.group("permissions")
    kind = _kind_from_permissions(permissions)
    name = match.group("name")
    if kind == KIND_SYMLINK and " -> " in name:
        name = name.split(" -> ", 1)[0]

    if name in (".", ".."):
        return None
    if "/" in name:
        # ``ls -l <file>`` echoes the path it was given.
        if name.rstrip("/") != base_path.rstrip("/"):
            return None
        path = base_path
        name = posixpath.basename(base_path.rstrip("/")) or "/"
    else:
        path = posixpath.join(base_path, name)

    return FileSystemEntry(
        name=name,
        path=path,
        kind=kind,
        size=int(match.group("size")),
        permissions=permissions,
        owner=match.group("owner"),
        group=match.group("group"),
        modified_at=_ls_timestamp(
            match.group("month"),
            match.group("day"),
            match.group("time_or_year"),
            now or datetime.now(timezone.utc),
        ),
        hidden=name.startswith("."),
    )


def parse_ls(text: str, base_path: str, now: Optional[datetime] = None) -> List[FileSystemEntry]:
    entries = []
    for line in _lines(text):
        if not line.strip() or line.startswith("total "):
            continue
        entry = parse_ls_line(line, base_path, now=now)
        if entry is not None:
            entries.append(entry)
    return entries


def _kind_from_stat(file_type: str) -> str:
    file_type = file_type.lower()
    if "directory" in file_type:
        return KIND_DIRECTORY
    if "regular" in file_type:
        return KIND_FILE
    if "link" in file_type:
        return KIND_SYMLINK
    return KIND_UNKNOWN


def parse_stat(text: str, path: str) -> Optional[FileSystemEntry]:
    """``stat -c '%n|%F|%s|%U|%G|%A|%Y'`` for the single ``path`` that was asked for."""
    line = next((line for line in _lines(text) if line.strip()), "")
    # The name may itself contain '|', so split from the right.
    parts = line.rsplit("|", 6)
    if len(parts) < 7:
        return None
    _, file_type, size, owner, group, permissions, mtime = parts

    name = posixpath.basename(path.rstrip("/")) or "/"
    try:
        size_value = int(size)
    except ValueError:
        size_value = 0
    try:
        modified_at = datetime.fromtimestamp(int(mtime), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        modified_at = None

    return FileSystemEntry(
        name=name,
        path=path,
        kind=_kind_from_stat(file_type),
        size=size_value,
        permissions=permissions.strip(),
        owner=owner,
        group=group,
        modified_at=modified_at,
        hidden=name.startswith("."),
    )


def parse_path_list(text: str, root: str) -> List[str]:
    """Absolute paths printed by ``find``, kept only when they sit under ``root``."""
    prefix = root.rstrip("/") + "/"
    seen = set()
    paths = []
    for line in _lines(text):
        if not line.strip():
            continue
        candidate = posixpath.normpath(line)
        if candidate != root and not candidate.startswith(prefix):
            continue
        if candidate in seen:
            continue
        seen.add(candidate)
        paths.append(candidate)
    return paths


def merge_paths(*groups: Iterable[str]) -> List[str]:
    seen = set()
    merged = []
    for group in groups:
        for path in group:
            if path not in seen:
                seen.add(path)
                merged.append(path)
    return merged
