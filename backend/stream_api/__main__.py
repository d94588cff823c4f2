"""Entry point for running the stream API and its proxy on a loopback socket."""
from __future__ import annotations

import logging
import socket
from typing import Callable, Optional

import uvicorn

from .app import create_app
from .settings import StreamSettings

logger = logging.getLogger(__name__)


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind a listening socket; port 0 lets the OS choose one."""

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind((host, port))
    sock.listen(128)
    sock.set_inheritable(True)
    return sock


def serve(
    settings: StreamSettings | None = None,
    on_ready: Optional[Callable[[str], None]] = None,
) -> None:
    """Serve the API until interrupted."""

    resolved = settings or StreamSettings()
    logging.basicConfig(
        level=resolved.log_level.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    app = create_app(resolved)
    sock = bind_socket(resolved.proxy_host, resolved.proxy_port)
    host, port = sock.getsockname()[:2]
    base_url = f"http://{host}:{port}"
    app.state.app_state.publish_base_url(base_url)
    logger.info(f"Stream API and proxy listening on {base_url}")
    if on_ready is not None:
        on_ready(base_url)

    server = uvicorn.Server(uvicorn.Config(app, log_level=resolved.log_level.lower()))
    server.run(sockets=[sock])


def main() -> None:
    """Start the stream API with settings read from the environment."""
    serve()


if __name__ == "__main__":
    main()
