from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Union

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from cerberus import __version__
from cerberus.auth import AuthService, TokenBinding, TokenRegistry
from cerberus.config import DEFAULT_SEARCH_DEPTH, config
from cerberus.docker import DockerService
from cerberus.errors import (
    CerberusError,
    ExecutionFailedError,
    InvalidCredentialsError,
    NotFoundError,
    ParseFailedError,
    SessionNotFoundError,
    ValidationError,
)
from cerberus.fs import FileSystemService
from cerberus.models import ContainerRunRequest, RunPortMapping, VolumeMapping
from cerberus.ssh import SessionDirectory
from cerberus.system import SystemService
from cerberus.utils import log_error

# Most specific first: NotFoundError is a ParseFailedError.
ERROR_STATUS = (
    (ValidationError, 400),
    (SessionNotFoundError, 401),
    (InvalidCredentialsError, 401),
    (NotFoundError, 404),
    (ParseFailedError, 500),
    (ExecutionFailedError, 500),
)


def status_for(exc: Exception) -> int:
    for kind, status in ERROR_STATUS:
        if isinstance(exc, kind):
            return status
    return 500


# ========= Request bodies =========
class LoginBody(BaseModel):
    host: str
    port: int = 22
    username: str
    password: str = ""


class PortBody(BaseModel):
    container_port: Union[int, str]
    host_port: Union[int, str] = ""
    protocol: str = "tcp"


class VolumeBody(BaseModel):
    host_path: str = ""
    container_path: str = ""
    read_only: bool = False


class RunContainerBody(BaseModel):
    image: str = ""
    name: str = ""
    ports: List[PortBody] = Field(default_factory=list)
    volumes: List[VolumeBody] = Field(default_factory=list)
    environment: Dict[str, str] = Field(default_factory=dict)
    detached: bool = True
    restart: str = ""
    network: str = ""
    command: List[str] = Field(default_factory=list)

    def to_request(self) -> ContainerRunRequest:
        return ContainerRunRequest(
            image=self.image,
            name=self.name,
            ports=[
                RunPortMapping(
                    container_port=str(port.container_port),
                    host_port=str(port.host_port),
                    protocol=port.protocol,
                )
                for port in self.ports
            ],
            volumes=[
                VolumeMapping(
                    host_path=volume.host_path,
                    container_path=volume.container_path,
                    read_only=volume.read_only,
                )
                for volume in self.volumes
            ],
            environment=dict(self.environment),
            detached=self.detached,
            restart=self.restart,
            network=self.network,
            command=list(self.command),
        )


# ========= Auth dependencies =========
def bearer_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization:
        raise SessionNotFoundError("missing bearer token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise SessionNotFoundError("malformed authorization header")
    return token.strip()


def current_binding(request: Request, token: str = Depends(bearer_token)) -> TokenBinding:
    return request.app.state.tokens.validate(token)


def create_app(
    directory: Optional[SessionDirectory] = None,
    tokens: Optional[TokenRegistry] = None,
    auth: Optional[AuthService] = None,
) -> FastAPI:
    directory = directory or SessionDirectory()
    tokens = tokens or TokenRegistry()
    auth = auth or AuthService(directory, tokens)

    system = SystemService(directory)
    docker = DockerService(directory)
    files = FileSystemService(directory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        log_error(f"shutting down, closing {len(directory)} session(s)")
        directory.close_all()

    app = FastAPI(title="Cerberus", version=__version__, lifespan=lifespan)
    app.state.directory = directory
    app.state.tokens = tokens
    app.state.auth = auth

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CerberusError)
    async def cerberus_error_handler(request: Request, exc: CerberusError):
        status = status_for(exc)
        if status >= 500:
            log_error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=status, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            problems.append(f"{location}: {error.get('msg', 'invalid')}" if location else error.get("msg", "invalid"))
        return JSONResponse(status_code=400, content={"error": "; ".join(problems) or "invalid request"})

    # ========= Session =========
    @app.get("/health")
    def health():
        return {"status": "ok", "version": __version__}

    @app.post("/login")
    def login(body: LoginBody):
        return auth.login(body.host, body.port, body.username, body.password)

    @app.post("/logout")
    def logout(token: str = Depends(bearer_token)):
        auth.logout(token)
        return {"message": "logged out"}

    # ========= Host facts =========
    @app.get("/server-details")
    def server_details(binding: TokenBinding = Depends(current_binding)):
        return system.details(binding.session_id)

    @app.get("/server-details/cpu-info")
    def cpu_info(binding: TokenBinding = Depends(current_binding)):
        return system.cpu_info(binding.session_id)

    @app.get("/server-details/disk-usage")
    def disk_usage(binding: TokenBinding = Depends(current_binding)):
        return system.disk_usage(binding.session_id)

    @app.get("/server-details/memory-usage")
    def memory_usage(binding: TokenBinding = Depends(current_binding)):
        return system.memory_usage(binding.session_id)

    @app.get("/server-details/running-processes")
    def running_processes(binding: TokenBinding = Depends(current_binding)):
        return system.processes(binding.session_id)

    @app.get("/server-details/libraries")
    def libraries(binding: TokenBinding = Depends(current_binding)):
        return system.packages(binding.session_id)

    # ========= Docker =========
    @app.get("/docker/containers")
    def containers(binding: TokenBinding = Depends(current_binding)):
        return docker.containers(binding.session_id)

    @app.get("/docker/container/{container_id}")
    def container(container_id: str, binding: TokenBinding = Depends(current_binding)):
        return docker.container(binding.session_id, container_id)

    @app.delete("/docker/container/{container_id}")
    def remove_container(container_id: str, force: bool = False, binding: TokenBinding = Depends(current_binding)):
        return docker.remove_container(binding.session_id, container_id, force=force)

    @app.get("/docker/images")
    def images(binding: TokenBinding = Depends(current_binding)):
        return docker.images(binding.session_id)

    # Registered before /docker/image/{image_id} so "run" is never taken as an id.
    @app.post("/docker/image/run", status_code=201)
    def run_container(body: RunContainerBody, binding: TokenBinding = Depends(current_binding)):
        return docker.run_container(binding.session_id, body.to_request())

    @app.get("/docker/image/{image_id}")
    def image(image_id: str, binding: TokenBinding = Depends(current_binding)):
        return docker.image(binding.session_id, image_id)

    @app.delete("/docker/image/{image_id}")
    def delete_image(image_id: str, force: bool = False, binding: TokenBinding = Depends(current_binding)):
        return docker.delete_image(binding.session_id, image_id, force=force)

    # ========= Filesystem =========
    @app.get("/filesystem/list")
    def list_files(
        path: str = "/",
        recursive: bool = False,
        include_hidden: bool = False,
        binding: TokenBinding = Depends(current_binding),
    ):
        return files.list(binding.session_id, path, recursive=recursive, include_hidden=include_hidden)

    @app.get("/filesystem/details")
    def file_details(path: str = Query(...), binding: TokenBinding = Depends(current_binding)):
        return files.details(binding.session_id, path)

    @app.get("/filesystem/search")
    def search_files(
        pattern: str = Query(...),
        path: str = "/",
        max_depth: int = DEFAULT_SEARCH_DEPTH,
        binding: TokenBinding = Depends(current_binding),
    ):
        return files.search(binding.session_id, path, pattern, max_depth=max_depth)

    return app
