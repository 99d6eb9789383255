from typing import List

from cerberus import commands
from cerberus.config import ARCH_FAMILY, DEBIAN_FAMILY, REDHAT_FAMILY, SUSE_FAMILY
from cerberus.errors import NotFoundError
from cerberus.models import CPUInfo, DiskUsage, MemoryUsage, PackageInfo, ProcessInfo, ServerDetails
from cerberus.parsers import (
    parse_cpuinfo,
    parse_disk_usage,
    parse_memory,
    parse_os_release_id,
    parse_packages,
    parse_processes,
)
from cerberus.ssh import RemoteSession, SessionDirectory


def package_manager_for(distro: str) -> str:
    if distro in DEBIAN_FAMILY:
        return "dpkg"
    if distro in REDHAT_FAMILY or distro in SUSE_FAMILY:
        return "rpm"
    if distro in ARCH_FAMILY:
        return "pacman"
    return ""


class SystemService:
    """Host facts: identity, CPU, disks, memory, processes and packages."""

    def __init__(self, directory: SessionDirectory):
        self.directory = directory

    def details(self, session_id: str) -> ServerDetails:
        session = self.directory.get(session_id)
        return ServerDetails(
            hostname=session.execute(commands.HOSTNAME).strip(),
            os=session.execute(commands.UNAME_ALL).strip(),
            kernel_version=session.execute(commands.UNAME_KERNEL).strip(),
            uptime=session.execute(commands.UPTIME).strip(),
        )

    def cpu_info(self, session_id: str) -> List[CPUInfo]:
        session = self.directory.get(session_id)
        return parse_cpuinfo(session.execute(commands.CPU_INFO))

    def disk_usage(self, session_id: str) -> List[DiskUsage]:
        session = self.directory.get(session_id)
        return parse_disk_usage(session.execute(commands.DISK_USAGE))

    def memory_usage(self, session_id: str) -> List[MemoryUsage]:
        session = self.directory.get(session_id)
        return parse_memory(session.execute(commands.MEMORY_USAGE))

    def processes(self, session_id: str) -> List[ProcessInfo]:
        session = self.directory.get(session_id)
        return parse_processes(session.execute(commands.PROCESSES))

    def packages(self, session_id: str) -> List[PackageInfo]:
        session = self.directory.get(session_id)
        manager = self.package_manager(session)
        return parse_packages(session.execute(commands.PACKAGE_COMMANDS[manager]))

    def package_manager(self, session: RemoteSession) -> str:
        # /etc/os-release may be missing on minimal images; fall back to probing.
        distro = parse_os_release_id(session.execute(commands.OS_RELEASE_ID, check=False))
        manager = package_manager_for(distro)
        if manager:
            return manager

        for tool, candidate in commands.PACKAGE_PROBES:
            if session.execute(commands.probe_tool(tool), check=False).strip() == "found":
                return candidate
        raise NotFoundError("no supported package manager")
