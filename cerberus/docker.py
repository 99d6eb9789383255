from typing import List

from cerberus import commands
from cerberus.errors import ExecutionFailedError, NotFoundError, ValidationError
from cerberus.inspect import parse_container_inspect, parse_image_inspect
from cerberus.models import (
    ContainerDetail,
    ContainerRemoveResult,
    ContainerRunRequest,
    ContainerRunResult,
    ContainerSummary,
    ImageDeleteResult,
    ImageDetail,
    ImageSummary,
)
from cerberus.parsers import (
    parse_containers,
    parse_delete_conflicts,
    parse_image_delete,
    parse_images,
    parse_run_output,
)
from cerberus.sanitize import sanitize_container_name, sanitize_identifier
from cerberus.ssh import RemoteSession, SessionDirectory
from cerberus.utils import log_error

NOT_FOUND_MARKERS = ("No such object", "No such image", "No such container")


def _require_identifier(raw: str, what: str) -> str:
    identifier = sanitize_identifier(raw)
    if not identifier or identifier == "sha256:":
        raise ValidationError(f"{what} id is required")
    return identifier


class DockerService:
    def __init__(self, directory: SessionDirectory):
        self.directory = directory

    def containers(self, session_id: str) -> List[ContainerSummary]:
        session = self.directory.get(session_id)
        return parse_containers(session.execute(commands.DOCKER_PS))

    def container(self, session_id: str, container_id: str) -> ContainerDetail:
        identifier = _require_identifier(container_id, "container")
        session = self.directory.get(session_id)
        raw = self._inspect(session, commands.inspect_container(identifier), identifier)
        return parse_container_inspect(raw, identifier)

    def images(self, session_id: str) -> List[ImageSummary]:
        session = self.directory.get(session_id)
        return parse_images(session.execute(commands.DOCKER_IMAGES))

    def image(self, session_id: str, image_id: str) -> ImageDetail:
        identifier = _require_identifier(image_id, "image")
        session = self.directory.get(session_id)
        raw = self._inspect(session, commands.inspect_image(identifier), identifier)
        return parse_image_inspect(raw, identifier)

    def _inspect(self, session: RemoteSession, command: str, identifier: str) -> str:
        try:
            return session.execute(command)
        except ExecutionFailedError as exc:
            if exc.mentions(*NOT_FOUND_MARKERS):
                raise NotFoundError(f"no such object: {identifier}")
            raise

    def delete_image(self, session_id: str, image_id: str, force: bool = False) -> ImageDeleteResult:
        """Remove an image.

        Docker refusing the delete (the image is in use, or tagged in several
        repositories) is reported in ``errors`` rather than raised.
        """
        identifier = _require_identifier(image_id, "image")
        session = self.directory.get(session_id)
        result = session.run(commands.remove_image(identifier, force=force))
        if result.ok:
            return parse_image_delete(result.stdout)

        if "No such image" in result.stderr:
            raise NotFoundError(f"no such image: {identifier}")
        conflicts = parse_delete_conflicts(result.stderr)
        if not conflicts:
            result.check()
        deleted = parse_image_delete(result.stdout)
        deleted.errors.extend(conflicts)
        return deleted

    def run_container(self, session_id: str, request: ContainerRunRequest) -> ContainerRunResult:
        command = commands.run_container(request)
        session = self.directory.get(session_id)
        result = session.run(command)
        stdout = result.check()
        name = sanitize_container_name(request.name)

        if not request.detached:
            return ContainerRunResult(container_id=name, name=name, status="exited", output=stdout)

        container_id, warnings = parse_run_output(stdout)
        warnings.extend(
            line.strip() for line in result.stderr.splitlines() if line.strip().startswith("WARNING")
        )
        return ContainerRunResult(
            container_id=container_id,
            name=name,
            status=self._status(session, container_id),
            warnings=warnings,
        )

    def _status(self, session: RemoteSession, container_id: str) -> str:
        if not container_id:
            return "created"
        try:
            status = session.execute(commands.container_status(container_id)).strip()
        except ExecutionFailedError as exc:
            log_error(f"container status lookup failed: {exc}")
            return "created"
        return status or "created"

    def remove_container(self, session_id: str, container_id: str, force: bool = False) -> ContainerRemoveResult:
        identifier = _require_identifier(container_id, "container")
        session = self.directory.get(session_id)
        try:
            session.execute(commands.remove_container(identifier, force=force))
        except ExecutionFailedError as exc:
            if exc.mentions(*NOT_FOUND_MARKERS):
                raise NotFoundError(f"no such container: {identifier}")
            raise
        return ContainerRemoveResult(container_id=identifier, removed=True)
