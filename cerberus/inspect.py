"""Typed decoding of ``docker inspect`` JSON.

Docker's inspect documents are large and version dependent, so every field is
read through ``Fields`` getters that return the zero value when a key is
missing or holds the wrong type.
"""

import json
from typing import Any, Dict, List

from cerberus.errors import NotFoundError, ParseFailedError
from cerberus.models import (
    ContainerDetail,
    ContainerState,
    HostConfig,
    ImageDetail,
    ImageHistory,
    Mount,
    NetworkSettings,
    PortMapping,
)
from cerberus.parsers import parse_rfc3339


class Fields:
    def __init__(self, data: Any):
        self.data = data if isinstance(data, dict) else {}

    def __bool__(self) -> bool:
        return bool(self.data)

    def _typed(self, key: str, kind: type, default: Any) -> Any:
        value = self.data.get(key)
        if isinstance(value, kind) and not (kind is int and isinstance(value, bool)):
            return value
        return default

    def text(self, key: str) -> str:
        return self._typed(key, str, "")

    def flag(self, key: str) -> bool:
        return self._typed(key, bool, False)

    def number(self, key: str) -> int:
        value = self.data.get(key)
        if isinstance(value, bool):
            return 0
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return 0

    def obj(self, key: str) -> "Fields":
        return Fields(self.data.get(key))

    def str_list(self, key: str) -> List[str]:
        value = self.data.get(key)
        if isinstance(value, str):
            return [value]
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, str)]

    def str_map(self, key: str) -> Dict[str, str]:
        value = self.data.get(key)
        if not isinstance(value, dict):
            return {}
        return {k: v for k, v in value.items() if isinstance(v, str)}

    def keys(self, key: str) -> List[str]:
        value = self.data.get(key)
        if not isinstance(value, dict):
            return []
        return list(value.keys())

    def items(self, key: str) -> List[Any]:
        value = self.data.get(key)
        return value if isinstance(value, list) else []


def decode_first(raw: str, identifier: str) -> Fields:
    """``docker inspect`` always prints an array; only the first element is used."""
    try:
        documents = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ParseFailedError(f"could not decode inspect output for {identifier}: {exc}")
    if not isinstance(documents, list):
        raise ParseFailedError(f"unexpected inspect output for {identifier}")
    if not documents:
        raise NotFoundError(f"no such object: {identifier}")
    return Fields(documents[0])


def _mounts(fields: Fields) -> List[Mount]:
    mounts = []
    for raw in fields.items("Mounts"):
        item = Fields(raw)
        mounts.append(
            Mount(
                type=item.text("Type"),
                source=item.text("Source"),
                destination=item.text("Destination"),
                mode=item.text("Mode"),
                rw=item.flag("RW"),
            )
        )
    return mounts


def _port_mappings(ports: Fields) -> List[PortMapping]:
    mappings = []
    for container_port in sorted(ports.data):
        port, _, protocol = container_port.partition("/")
        bindings = ports.items(container_port)
        if not bindings:
            mappings.append(PortMapping(container_port=port, protocol=protocol))
            continue
        for raw in bindings:
            binding = Fields(raw)
            mappings.append(
                PortMapping(
                    container_port=port,
                    host_port=binding.text("HostPort"),
                    host_ip=binding.text("HostIp"),
                    protocol=protocol,
                )
            )
    return mappings


def _network_settings(fields: Fields) -> NetworkSettings:
    settings = fields.obj("NetworkSettings")
    result = NetworkSettings(
        ip_address=settings.text("IPAddress"),
        gateway=settings.text("Gateway"),
        mac_address=settings.text("MacAddress"),
        port_mappings=_port_mappings(settings.obj("Ports")),
    )

    networks = settings.obj("Networks")
    names = sorted(networks.data)
    if names:
        name = names[0]
        network = networks.obj(name)
        result.network_name = name
        result.endpoint_id = network.text("EndpointID")
        result.network_id = network.text("NetworkID")
        result.ip_address = network.text("IPAddress") or result.ip_address
        result.gateway = network.text("Gateway") or result.gateway
        result.mac_address = network.text("MacAddress") or result.mac_address
        prefix = network.number("IPPrefixLen")
        if prefix:
            result.subnet_prefix = str(prefix)
    return result


def _state(fields: Fields) -> ContainerState:
    state = fields.obj("State")
    return ContainerState(
        status=state.text("Status"),
        running=state.flag("Running"),
        paused=state.flag("Paused"),
        restarting=state.flag("Restarting"),
        started_at=parse_rfc3339(state.text("StartedAt")),
        finished_at=parse_rfc3339(state.text("FinishedAt")),
        exit_code=state.number("ExitCode"),
        error=state.text("Error"),
    )


def _host_config(fields: Fields) -> HostConfig:
    host = fields.obj("HostConfig")
    return HostConfig(
        auto_remove=host.flag("AutoRemove"),
        privileged=host.flag("Privileged"),
        publish_all_ports=host.flag("PublishAllPorts"),
        restart_policy=host.obj("RestartPolicy").text("Name"),
        network_mode=host.text("NetworkMode"),
        dns=host.str_list("Dns"),
        cap_add=host.str_list("CapAdd"),
        cap_drop=host.str_list("CapDrop"),
    )


def parse_container_inspect(raw: str, identifier: str = "") -> ContainerDetail:
    fields = decode_first(raw, identifier)
    config = fields.obj("Config")
    host_config = _host_config(fields)
    state = _state(fields)

    # The name is reported with a leading '/'.
    name = fields.text("Name")
    if name.startswith("/"):
        name = name[1:]

    return ContainerDetail(
        id=fields.text("Id"),
        name=name,
        image=config.text("Image") or fields.text("Image"),
        command=config.str_list("Cmd"),
        created=parse_rfc3339(fields.text("Created")),
        status=state.status,
        network_mode=host_config.network_mode,
        restart_policy=host_config.restart_policy,
        platform=fields.text("Platform"),
        mounts=_mounts(fields),
        labels=config.str_map("Labels"),
        network_settings=_network_settings(fields),
        state=state,
        host_config=host_config,
    )


def _history(fields: Fields) -> List[ImageHistory]:
    history = []
    for raw in fields.items("History"):
        item = Fields(raw)
        history.append(
            ImageHistory(
                created=parse_rfc3339(item.text("created")),
                created_by=item.text("created_by"),
                empty_layer=item.flag("empty_layer"),
                comment=item.text("comment"),
            )
        )
    return history


def parse_image_inspect(raw: str, identifier: str = "") -> ImageDetail:
    fields = decode_first(raw, identifier)
    config = fields.obj("Config")
    return ImageDetail(
        id=fields.text("Id"),
        repo_tags=fields.str_list("RepoTags"),
        repo_digests=fields.str_list("RepoDigests"),
        created=parse_rfc3339(fields.text("Created")),
        size=fields.number("Size"),
        virtual_size=fields.number("VirtualSize"),
        shared_size=fields.number("SharedSize"),
        architecture=fields.text("Architecture"),
        os=fields.text("Os"),
        author=fields.text("Author"),
        container=fields.text("Container"),
        docker_version=fields.text("DockerVersion"),
        labels=config.str_map("Labels"),
        env=config.str_list("Env"),
        cmd=config.str_list("Cmd"),
        entrypoint=config.str_list("Entrypoint"),
        working_dir=config.text("WorkingDir"),
        volumes=config.keys("Volumes"),
        exposed_ports=config.keys("ExposedPorts"),
        layers=fields.obj("RootFS").str_list("Layers"),
        history=_history(fields),
    )
