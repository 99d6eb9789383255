import argparse

import uvicorn

from cerberus.config import config
from cerberus.server import create_app
from cerberus.utils import log_error


def main() -> None:
    # Pre-load from environment
    config.load_from_env()

    parser = argparse.ArgumentParser(
        description="Cerberus: structured HTTP API over SSH for host, docker and filesystem inspection"
    )
    parser.add_argument("--host", help="Bind address (overrides CERBERUS_HOST env)")
    parser.add_argument("--port", type=int, help="Bind port (overrides CERBERUS_PORT env)")
    parser.add_argument("--connect-timeout", type=float, help="SSH connect timeout in seconds (overrides SSH_CONNECT_TIMEOUT env)")
    parser.add_argument("--verify-host", action="store_true", help="Reject SSH hosts missing from the system known_hosts")
    parser.add_argument("--no-verify-host", action="store_true", help="Accept unknown SSH host keys")
    parser.add_argument("--token-ttl", type=int, help="Bearer token lifetime in seconds (overrides TOKEN_TTL_SECONDS env)")
    parser.add_argument("--log-dir", help="Directory for per-session audit logs (overrides CERBERUS_LOG_DIR env)")

    args = parser.parse_args()

    # Apply args over env vars
    if args.host: config.API_HOST = args.host
    if args.port: config.API_PORT = args.port
    if args.connect_timeout: config.SSH_CONNECT_TIMEOUT = args.connect_timeout
    if args.token_ttl: config.TOKEN_TTL_SECONDS = args.token_ttl
    if args.log_dir: config.LOG_DIR = args.log_dir

    if args.no_verify_host:
        config.SSH_VERIFY_HOST_KEY = False
    elif args.verify_host:
        config.SSH_VERIFY_HOST_KEY = True

    if config.TOKEN_TTL_SECONDS <= 0:
        parser.error("token TTL must be positive")
    if not 0 < config.API_PORT < 65536:
        parser.error(f"invalid port: {config.API_PORT}")

    app = create_app()
    log_error(
        f"API listening on {config.API_HOST}:{config.API_PORT}. "
        f"log_dir={config.LOG_DIR} verify_host={config.SSH_VERIFY_HOST_KEY} "
        f"token_ttl={config.TOKEN_TTL_SECONDS}s"
    )
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT, access_log=True)


if __name__ == "__main__":
    main()
