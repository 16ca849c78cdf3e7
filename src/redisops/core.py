import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

import redis

from .errors import ConnectionFailedError, ItemExecutionError, RedisOpsError, StoreProtocolError
from .models import Credential, Item, ItemResult
from .operations import OperationContext, OperationDescriptor, get_operation
from .services.connection import ConnectionService
from .services.manifest import ManifestService
from .services.parameters import ParameterResolver
from .services.value_types import ValueTypeService

logger = logging.getLogger("redisops")


class Dispatcher:
    """Runs one operation over a batch of items on a single connection.

    The run moves through provisioning, ready, item_loop, draining and closed.
    The connection is closed exactly once on every path out of the loop.
    """

    def __init__(
        self,
        credential: Credential,
        operation: str,
        parameters: Optional[Mapping[str, Any]] = None,
        continue_on_fail: bool = False,
        connection_service: Optional[ConnectionService] = None,
        value_type_service: Optional[ValueTypeService] = None,
        manifest_service: Optional[ManifestService] = None,
    ):
        self.credential = credential
        self.operation = operation
        self.parameters = dict(parameters or {})
        self.continue_on_fail = continue_on_fail
        self.connection_service = connection_service or ConnectionService(logger=logger)
        self.value_type_service = value_type_service or ValueTypeService(logger=logger)
        self.manifest_service = manifest_service
        self.run_id = uuid.uuid4().hex[:10]
        self.state = "idle"

    def _resolve_params(
        self, descriptor: OperationDescriptor, resolver: ParameterResolver, item_index: int
    ) -> Dict[str, Any]:
        return {
            parameter.name: resolver.resolve(
                parameter.name, parameter.kind, item_index, parameter.default
            )
            for parameter in descriptor.parameters
        }

    def _run_item(
        self, descriptor: OperationDescriptor, resolver: ParameterResolver, client, item: Item
    ) -> ItemResult:
        try:
            params = self._resolve_params(descriptor, resolver, item.index)
            logger.debug("Item %s: %s %s", item.index, descriptor.id, params)
            context = OperationContext(
                client=client,
                params=params,
                item=item,
                values=self.value_type_service,
            )
            try:
                output = descriptor.handler(context)
            except redis.RedisError as exc:
                raise StoreProtocolError(str(exc)) from exc
        except Exception as exc:
            if not self.continue_on_fail:
                logger.error("Item %s failed, aborting run: %s", item.index, exc)
                raise ItemExecutionError(str(exc), item_index=item.index) from exc
            logger.warning("Item %s failed: %s", item.index, exc)
            return ItemResult(json={"error": str(exc)}, paired_item=item.index, is_error=True)

        return ItemResult(json=output, paired_item=item.index)

    def _start_manifest(self, item_count: int):
        if self.manifest_service is None:
            return
        self.manifest_service.start_run(
            self.run_id,
            {
                "operation": self.operation,
                "host": self.credential.host,
                "port": self.credential.port,
                "database": self.credential.database,
                "continue_on_fail": self.continue_on_fail,
                "item_count": item_count,
            },
        )

    def _finish_manifest(self, status: str, results: List[ItemResult], error: Optional[str] = None):
        if self.manifest_service is None:
            return
        self.manifest_service.set_counts(
            output_count=len(results),
            error_count=sum(1 for result in results if result.is_error),
        )
        self.manifest_service.finalize(status, error=error)

    def run(self, payloads: Sequence[Mapping[str, Any]]) -> List[ItemResult]:
        items = [Item(index=index, json=dict(payload)) for index, payload in enumerate(payloads)]
        results: List[ItemResult] = []

        descriptor = get_operation(self.operation)
        resolver = ParameterResolver(self.parameters, items)
        self._start_manifest(len(items))
        logger.info("Running %s over %s item(s)", descriptor.id, len(items))

        self.state = "provisioning"
        try:
            client = self.connection_service.connect(self.credential)
        except ConnectionFailedError as exc:
            self.state = "closed"
            self._finish_manifest("failed", results, str(exc))
            raise

        self.state = "ready"
        try:
            self.state = "item_loop"
            if descriptor.per_item:
                for item in items:
                    results.append(self._run_item(descriptor, resolver, client, item))
            else:
                # runs once per execution rather than once per item
                single = items[0] if items else Item(index=0)
                results.append(self._run_item(descriptor, resolver, client, single))
        except RedisOpsError as exc:
            self._finish_manifest("failed", results, str(exc))
            raise
        finally:
            self.state = "draining"
            self.connection_service.close(client)
            self.state = "closed"

        self._finish_manifest("success", results)
        logger.info(
            "Finished %s: %s record(s), %s error(s)",
            descriptor.id,
            len(results),
            sum(1 for result in results if result.is_error),
        )
        return results
