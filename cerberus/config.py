import os
from typing import List, Optional

from cerberus.utils import to_bool

# ========= Static config =========
KEEPALIVE_INTERVAL = 30
BUFFER_SIZE = 4096
POLL_INTERVAL = 0.05

DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_TOKEN_TTL_SECONDS = 24 * 60 * 60
DEFAULT_SEARCH_DEPTH = 10
MAX_SEARCH_DEPTH = 64
PREVIEW_LINES = 10

DOCKER_PS_FORMAT = "{{.ID}}|{{.Image}}|{{.Command}}|{{.RunningFor}}|{{.Status}}|{{.Ports}}|{{.Names}}"
DOCKER_IMAGES_FORMAT = "{{.Repository}}|{{.Tag}}|{{.ID}}|{{.CreatedSince}}|{{.Size}}|{{.Digest}}"
STAT_FORMAT = "%n|%F|%s|%U|%G|%A|%Y"

DEBIAN_FAMILY = {"ubuntu", "debian", "pop", "mint", "elementary", "kali", "zorin", "raspbian"}
REDHAT_FAMILY = {"fedora", "rhel", "centos", "rocky", "alma", "almalinux", "amzn", "ol"}
SUSE_FAMILY = {"opensuse", "opensuse-leap", "opensuse-tumbleweed", "suse", "sles"}
ARCH_FAMILY = {"arch", "manjaro", "endeavouros"}


# ========= Runtime Configuration =========
class ServerConfig:
    def __init__(self):
        self.API_HOST: str = "0.0.0.0"
        self.API_PORT: int = 8080
        self.SSH_CONNECT_TIMEOUT: float = DEFAULT_CONNECT_TIMEOUT
        self.SSH_VERIFY_HOST_KEY: bool = False
        self.TOKEN_TTL_SECONDS: int = DEFAULT_TOKEN_TTL_SECONDS
        self.LOG_DIR: Optional[str] = None
        self.CORS_ORIGINS: List[str] = ["*"]

    def load_from_env(self):
        self.API_HOST = os.environ.get("CERBERUS_HOST", self.API_HOST)
        self.API_PORT = int(os.environ.get("CERBERUS_PORT", self.API_PORT))
        self.SSH_CONNECT_TIMEOUT = float(os.environ.get("SSH_CONNECT_TIMEOUT", self.SSH_CONNECT_TIMEOUT))
        self.TOKEN_TTL_SECONDS = int(os.environ.get("TOKEN_TTL_SECONDS", self.TOKEN_TTL_SECONDS))
        self.LOG_DIR = os.environ.get("CERBERUS_LOG_DIR", self.LOG_DIR) or None

        self.SSH_VERIFY_HOST_KEY = to_bool(os.environ.get("SSH_VERIFY_HOST_KEY"), self.SSH_VERIFY_HOST_KEY)

        origins_env = os.environ.get("CORS_ORIGINS")
        if origins_env:
            self.CORS_ORIGINS = [item.strip() for item in origins_env.split(",") if item.strip()]

# Global instance
config = ServerConfig()
