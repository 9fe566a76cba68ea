import json
import logging

from typing import Any, Callable, Dict, List, Optional

from prometheus_client.twisted import MetricsResource
from twisted.internet import reactor, threads
from twisted.python.failure import Failure
from twisted.web.resource import Resource
from twisted.web.server import NOT_DONE_YET, Site

from reconstructors.marketplace.marketplace_models import (
    activity_item_to_dict,
    asset_to_dict,
)
from reconstructors.marketplace.processor import (
    MarketplaceReconstructor,
    ReconstructionResult,
)
from utils.config import Config
from utils.content_utils import ContentResolver
from utils.reconstructor_name import ReconstructorName
from utils.web3_client import Web3Ledger

SERVER_SERVICE_TYPE = "server"


class ReconstructorServer:
    config: Config

    def __init__(self, config: Config):
        self.config = config
        server_config = self.config.server_config
        reconstructor_config = server_config.reconstructor_config
        logging.info(
            "[Server] Kicking off",
            extra={
                "reconstructor_name": reconstructor_config.type,
                "service_type": SERVER_SERVICE_TYPE,
            },
        )

        # Instantiate the correct reconstructor based on config
        match reconstructor_config.type:
            case ReconstructorName.MARKETPLACE_RECONSTRUCTOR.value:
                self.reconstructor = MarketplaceReconstructor(
                    Web3Ledger(
                        server_config.ledger_rpc_url,
                        server_config.ledger_request_timeout_in_secs,
                        server_config.num_concurrent_fetch_tasks,
                    ),
                    ContentResolver(
                        gateway_url=server_config.content_gateway_url,
                        timeout_in_secs=server_config.content_request_timeout_in_secs,
                        max_retries=server_config.content_max_retries,
                    ),
                    server_config.num_concurrent_fetch_tasks,
                )
            case _:
                raise Exception(
                    "Invalid reconstructor name"
                    "\n[ERROR]: The specified reconstructor name was invalid or not found.\n"
                    "         - Make sure the name is listed in the ReconstructorName enum in utils/reconstructor_name.py.\n"
                    "         - Ensure the ReconstructorServer constructor in utils/worker.py handles the new enum value.\n"
                )

    def refresh(self, owner_address: Optional[str] = None) -> ReconstructionResult:
        context = self.config.server_config.get_market_context(owner_address)
        return self.reconstructor.refresh(context)

    def build_resource(self) -> Resource:
        root = Resource()
        root.putChild(b"metrics", MetricsResource())  # type: ignore
        root.putChild(b"", ServerOk())  # type: ignore
        root.putChild(
            b"assets",
            RefreshResource(
                self.refresh,
                lambda result: [asset_to_dict(asset) for asset in result.assets],
            ),
        )  # type: ignore
        root.putChild(
            b"activity",
            RefreshResource(
                self.refresh,
                lambda result: [activity_item_to_dict(item) for item in result.activity],
            ),
        )  # type: ignore
        return root

    def run(self) -> None:
        logging.info(
            "[Server] Listening",
            extra={
                "port": self.config.health_check_port,
                "service_type": SERVER_SERVICE_TYPE,
            },
        )
        reactor.listenTCP(self.config.health_check_port, Site(self.build_resource()))  # type: ignore
        reactor.run()  # type: ignore


class ServerOk(Resource):
    isLeaf = True

    def render_GET(self, request):
        return b"ok"


class RefreshResource(Resource):
    """
    Runs a full reconstruction pass per request. The pass blocks on network I/O,
    so it runs in the reactor's thread pool.
    """

    isLeaf = True

    def __init__(
        self,
        refresh: Callable[[Optional[str]], ReconstructionResult],
        serialize: Callable[[ReconstructionResult], List[Dict[str, Any]]],
    ):
        Resource.__init__(self)
        self.refresh = refresh
        self.serialize = serialize

    def render_GET(self, request):
        owner = request.args.get(b"owner", [None])[0]
        owner_address = owner.decode() if owner else None

        deferred = threads.deferToThread(self.refresh, owner_address)
        deferred.addCallback(self.write_result, request)
        deferred.addErrback(self.write_error, request)
        return NOT_DONE_YET

    def write_result(self, result: ReconstructionResult, request) -> None:
        request.setHeader(b"content-type", b"application/json")
        request.write(json.dumps(self.serialize(result)).encode())
        request.finish()

    def write_error(self, failure: Failure, request) -> None:
        logging.error(
            "[Server] Reconstruction pass failed",
            extra={
                "error": failure.getErrorMessage(),
                "service_type": SERVER_SERVICE_TYPE,
            },
        )
        request.setResponseCode(503)
        request.setHeader(b"content-type", b"application/json")
        request.write(json.dumps({"error": failure.getErrorMessage()}).encode())
        request.finish()
