"""
Production Cycle Client - Controller GraphQL Client

Reads and writes controller IO variables over the GraphQL HTTP endpoint and
keeps a cached copy of the controller IO state fresh through the
``SubscribeRobotBridgesState`` subscription (graphql-ws over WebSocket).

Endpoints:
    HTTP:      {scheme}://{host}:{port}/api/v2/graphql
    WebSocket: ws(s)://{host}:{port}/api/v2/graphql
"""

import base64
import json
import threading
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx
from pydantic import ValidationError
from websockets.exceptions import WebSocketException
from websockets.sync.client import connect

from order_queue.errors import RemoteError
from utils.config import (
    HTTP_TIMEOUT,
    SUBSCRIPTION_BACKOFF_MAX_S,
    SUBSCRIPTION_BACKOFF_MIN_S,
)
from utils.logging_config import get_logger

from .messages import GraphQLResponse, SubscriptionMessage
from .snapshot import SnapshotCache

logger = get_logger("controller_client.graph")


# =============================================================================
# GRAPHQL DOCUMENTS
# =============================================================================

GRAPHQL_PATH = "/api/v2/graphql"

SET_IO_VARIABLES_MUTATION = """mutation SetControllerIOVariables($parameters: Any!) {
 CommandRobotBridges(command: "SetControllerIOVariables", parameters: $parameters)
}"""

GET_IO_VARIABLE_MUTATION = """mutation GetControllerIOVariable($parameters: Any!) {
  CommandRobotBridges(command: "GetControllerIOVariable", parameters: $parameters)
}"""

SUBSCRIBE_ROBOT_BRIDGES_STATE = """
subscription {
    SubscribeRobotBridgesState {
        sentiovalues
        receivediovalues
    }
}
"""

SUBSCRIPTION_ID = "1"
SUBSCRIPTION_RECV_TIMEOUT_S = 1.0


class GraphClient:
    """
    GraphQL client for one controller.

    Implements the remote state channel used by ``OrderManager``: one HTTP
    round trip per ``read_variable``/``write_variables`` call, and cached
    snapshot reads fed by the subscription thread.

    Attributes
    ----------
    graph_endpoint : str
        HTTP GraphQL endpoint.
    websocket_endpoint : str
        WebSocket endpoint used by the subscription.
    cache : SnapshotCache
        Latest controller IO state.
    """

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        timeout: float = HTTP_TIMEOUT,
        cache: Optional[SnapshotCache] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        parsed = urlsplit(url)
        if not parsed.scheme or not parsed.hostname:
            raise ValueError(f"Invalid controller url: {url}")
        netloc = parsed.hostname
        if parsed.port:
            netloc = f"{netloc}:{parsed.port}"
        websocket_scheme = "wss" if parsed.scheme == "https" else "ws"
        self.graph_endpoint = urlunsplit((parsed.scheme, netloc, GRAPHQL_PATH, "", ""))
        self.websocket_endpoint = urlunsplit((websocket_scheme, netloc, GRAPHQL_PATH, "", ""))

        credentials = base64.b64encode(f"{username}:{password}".encode()).decode()
        self.headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-CSRFToken": "token",
            "Authorization": f"Basic {credentials}",
        }
        self.cookies: Dict[str, str] = {"csrftoken": "token"}
        self.headers["Cookie"] = "; ".join(f"{key}={value}" for key, value in self.cookies.items())

        self.cache = cache or SnapshotCache()
        self.http_client = httpx.Client(
            headers=self.headers,
            timeout=timeout,
            transport=transport,
        )
        self._stop_event = threading.Event()
        self._subscription_thread: Optional[threading.Thread] = None

    # =========================================================================
    # Cached IO State
    # =========================================================================

    def read_received_snapshot(self) -> Mapping[str, Any]:
        """Received IO values from the controller state."""
        return self.cache.received()

    def read_reported_snapshot(self) -> Mapping[str, Any]:
        """Sent IO values from the controller state."""
        return self.cache.reported()

    # =========================================================================
    # GraphQL Requests
    # =========================================================================

    def _execute(self, query: str, parameters: Dict[str, Any], description: str) -> GraphQLResponse:
        """POST one GraphQL document and return the parsed envelope."""
        body = {"query": query, "variables": {"parameters": parameters}}
        try:
            response = self.http_client.post(self.graph_endpoint, json=body)
        except httpx.HTTPError as e:
            raise RemoteError(f"Failed to {description}: {e}") from e

        raw = response.text
        if response.is_error:
            raise RemoteError(
                f"Failed to {description}. status: {response.status_code}, response: {raw}",
                raw_response=raw,
            )
        try:
            parsed = GraphQLResponse.model_validate_json(raw)
        except ValidationError as e:
            raise RemoteError(f"Failed to {description}. invalid response: {raw}", raw_response=raw) from e
        if parsed.errors:
            raise RemoteError(f"Failed to {description}. response: {raw}", raw_response=raw)
        return parsed

    def read_variable(self, name: str) -> Any:
        """
        Get a single IO variable from the controller.

        Parameters
        ----------
        name : str
            IO name, optionally with a bracket index, e.g. ``productionQueue1Result[0]``.

        Raises
        ------
        RemoteError
            If the request fails or the controller returns no value.
        """
        description = f"get io variable for IO name {name}"
        response = self._execute(GET_IO_VARIABLE_MUTATION, {"parametername": name}, description)
        result = response.command_result()
        value = result.get("parametervalue") if isinstance(result, dict) else None
        if value is None:
            raise RemoteError(
                f"Failed to {description}. response: {response.model_dump_json()}",
                raw_response=response.model_dump(),
            )
        return value

    def write_variables(self, variables: Mapping[str, Any]) -> None:
        """
        Set IO variables on the controller in one request.

        Parameters
        ----------
        variables : Mapping[str, Any]
            IO name to value. All pairs are sent in a single mutation.
        """
        if not variables:
            return
        io_name_values = [[name, value] for name, value in variables.items()]
        self._execute(
            SET_IO_VARIABLES_MUTATION,
            {"ioNameValues": io_name_values},
            f"set io variables for {dict(variables)}",
        )

    # =========================================================================
    # Subscription
    # =========================================================================

    def handle_subscription_message(self, message) -> None:
        """Apply one graphql-ws frame to the snapshot cache."""
        try:
            frame = SubscriptionMessage.model_validate_json(message)
        except ValidationError as e:
            logger.warning("[GraphClient] Ignoring invalid subscription frame: %s", e)
            return

        if frame.type == "connection_ack":
            logger.info("[GraphClient] Received connection_ack")
        elif frame.type == "ka":
            pass
        elif frame.type == "data":
            try:
                state = frame.robot_bridges_state()
            except ValidationError as e:
                logger.warning("[GraphClient] Invalid robot bridges state: %s", e)
                return
            if state is None:
                logger.warning("[GraphClient] Subscription data without state: %s", frame.payload)
                return
            self.cache.replace(state)
        elif frame.type in ("error", "connection_error"):
            logger.warning("[GraphClient] Subscription error: %s", frame.payload)
        elif frame.type == "complete":
            logger.info("[GraphClient] Subscription completed by the server")
        else:
            logger.debug("[GraphClient] Unhandled subscription frame type: %s", frame.type)

    def _run_subscription(self, stop_event: threading.Event) -> None:
        """Open one WebSocket connection and consume frames until stopped or closed."""
        with connect(
            self.websocket_endpoint,
            additional_headers=self.headers,
            subprotocols=["graphql-ws"],
        ) as websocket:
            logger.info("[GraphClient] Connected to %s", self.websocket_endpoint)
            websocket.send(json.dumps({"type": "connection_init", "payload": {}}))
            websocket.send(json.dumps({
                "type": "start",
                "id": SUBSCRIPTION_ID,
                "payload": {"query": SUBSCRIBE_ROBOT_BRIDGES_STATE},
            }))
            while not stop_event.is_set():
                try:
                    message = websocket.recv(timeout=SUBSCRIPTION_RECV_TIMEOUT_S)
                except TimeoutError:
                    continue
                self.handle_subscription_message(message)
            websocket.send(json.dumps({"type": "stop", "id": SUBSCRIPTION_ID}))

    def subscribe_robot_bridges_state(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Keep the snapshot cache subscribed to controller IO changes.

        Reconnects with capped exponential backoff whenever the connection
        drops, until ``stop_event`` is set.
        """
        stop_event = stop_event or self._stop_event
        backoff = SUBSCRIPTION_BACKOFF_MIN_S
        while not stop_event.is_set():
            sequence = self.cache.snapshot().sequence
            try:
                self._run_subscription(stop_event)
            except (OSError, WebSocketException) as e:
                logger.warning("[GraphClient] Graphql subscription failed: %s", e)
            if stop_event.is_set():
                break
            if self.cache.snapshot().sequence > sequence:
                backoff = SUBSCRIPTION_BACKOFF_MIN_S
            logger.info("[GraphClient] Reconnecting subscription in %.1fs", backoff)
            if stop_event.wait(backoff):
                break
            backoff = min(backoff * 2, SUBSCRIPTION_BACKOFF_MAX_S)
        logger.info("[GraphClient] Disconnected from the server")

    def start_subscription(self) -> threading.Thread:
        """Run the subscription on a daemon thread (idempotent)."""
        if self._subscription_thread and self._subscription_thread.is_alive():
            return self._subscription_thread
        self._stop_event.clear()
        self._subscription_thread = threading.Thread(
            target=self.subscribe_robot_bridges_state,
            args=(self._stop_event,),
            name="robot-bridges-subscription",
            daemon=True,
        )
        self._subscription_thread.start()
        return self._subscription_thread

    def wait_for_state(self, timeout: Optional[float] = None) -> bool:
        """Wait until at least one subscription snapshot has been received."""
        if self.cache.has_snapshot:
            return True
        return self.cache.wait_for_update(timeout=timeout, after_sequence=0)

    def close(self) -> None:
        """Stop the subscription thread and release the HTTP connection pool."""
        self._stop_event.set()
        if self._subscription_thread:
            self._subscription_thread.join(timeout=SUBSCRIPTION_RECV_TIMEOUT_S * 2)
            self._subscription_thread = None
        self.http_client.close()

    def __enter__(self) -> "GraphClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
