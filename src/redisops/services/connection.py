"""Connection provisioning and credential testing."""

import logging
from typing import Any, Callable, Dict, Optional

import redis

from redisops.errors import ConnectionFailedError
from redisops.errors_catalog import actionable_error
from redisops.models import ConnectionTestResult, Credential


def _raw_response(response, **_options):
    return response


class ConnectionService:
    """Builds store clients from credentials and probes them."""

    def __init__(
        self,
        logger: logging.Logger,
        client_factory: Optional[Callable[..., Any]] = None,
        socket_timeout: Optional[float] = None,
    ):
        self.logger = logger
        self.client_factory = client_factory or redis.Redis
        self.socket_timeout = socket_timeout

    def client_kwargs(self, credential: Credential) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "host": credential.host,
            "port": credential.port,
            "db": credential.database,
            "username": credential.user or None,
            "password": credential.password or None,
            "decode_responses": True,
        }
        if credential.ssl is True:
            kwargs["ssl"] = True
        if self.socket_timeout is not None:
            kwargs["socket_timeout"] = self.socket_timeout
        return kwargs

    def provision(self, credential: Credential):
        """Return an unconnected client; redis-py connects on first command."""
        self.logger.debug(
            "Provisioning client for %s:%s/%s (ssl=%s)",
            credential.host,
            credential.port,
            credential.database,
            credential.ssl,
        )
        client = self.client_factory(**self.client_kwargs(credential))
        # INFO is parsed by parse_report, so keep the server's raw text
        client.set_response_callback("INFO", _raw_response)
        return client

    def connect(self, credential: Credential):
        """Provision a client and ping it, closing the client if the probe fails."""
        client = self.provision(credential)
        try:
            client.ping()
        except Exception as exc:
            self.close(client)
            raise ConnectionFailedError(
                actionable_error(
                    "connection_failed",
                    host=credential.host,
                    port=credential.port,
                    detail=exc,
                )
            ) from exc
        return client

    def close(self, client) -> None:
        try:
            client.close()
            self.logger.debug("Connection closed.")
        except redis.RedisError as exc:
            self.logger.warning("Could not close connection cleanly: %s", exc)

    def test(self, credential: Credential) -> ConnectionTestResult:
        client = None
        try:
            client = self.provision(credential)
            client.ping()
        except Exception as exc:
            return ConnectionTestResult(status="Error", message=str(exc))
        finally:
            if client is not None:
                self.close(client)
        return ConnectionTestResult(status="OK", message="Connection successful!")
