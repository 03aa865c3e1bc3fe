from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass, field
from typing import Any, List, Sequence

from pyVim.connect import Disconnect, SmartConnect

from .errors import NoSessionError

logger = logging.getLogger("esxi_report.session")


@dataclass
class Endpoint:
    server: str
    service_instance: Any

    @property
    def content(self):
        return self.service_instance.RetrieveContent()


@dataclass
class SessionContext:
    """The management endpoints a run talks to, passed explicitly to every collaborator."""

    endpoints: List[Endpoint] = field(default_factory=list)

    def require(self) -> "SessionContext":
        if not self.endpoints:
            raise NoSessionError("Not connected to any vCenter or ESXi endpoint")
        return self

    @property
    def servers(self) -> List[str]:
        return [e.server for e in self.endpoints]

    def close(self):
        for endpoint in self.endpoints:
            try:
                Disconnect(endpoint.service_instance)
            except Exception:
                logger.debug("Error disconnecting from %s", endpoint.server, exc_info=True)
        self.endpoints = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def connect(
    servers: Sequence[str],
    user: str,
    password: str,
    port: int = 443,
    verify_ssl: bool = True,
) -> SessionContext:
    """Open one SOAP session per server; servers that refuse are logged and left out."""
    session = SessionContext()
    ctx = ssl.create_default_context() if verify_ssl else ssl._create_unverified_context()
    for server in servers:
        try:
            si = SmartConnect(host=server, user=user, pwd=password, port=port, sslContext=ctx)
        except Exception as exc:
            logger.error("Failed to connect to %s: %s", server, exc)
            continue
        logger.info("Connected to %s", server)
        session.endpoints.append(Endpoint(server=server, service_instance=si))
    return session
