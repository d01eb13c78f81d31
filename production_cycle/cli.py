#!/usr/bin/env python3
"""
Production Cycle Client - Command Line Interface

Usage:
    production-cycle --url http://controller queue-order --order '{"orderUniqueId": "order1"}'
    production-cycle drain [--mqtt]
    production-cycle reset-results
    production-cycle start-cycle
    production-cycle handle-location --location-index 1 --container-id source0001
"""

import argparse
import json
import signal
import sys
import threading
from typing import List, Optional

from controller_client.graph_client import GraphClient
from order_queue.drain import ResultDrainLoop
from order_queue.errors import ProductionCycleError, RemoteError
from order_queue.order_manager import FullQueuePolicy, OrderManager
from order_queue.sinks import LoggingResultSink, MqttResultSink
from utils.config import ClientSettings
from utils.logging_config import get_logger, setup_logging

from .cycle import start_production_cycle
from .location import LocationConfig, LocationMoveHandler

logger = get_logger("production_cycle.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="production-cycle",
        description="Queue orders and read order results on a controller production cycle",
    )
    parser.add_argument("--url", help="URL of the controller")
    parser.add_argument("--username", help="Username to login with")
    parser.add_argument("--password", help="Password to login with")
    parser.add_argument("--queue-index", type=int, help="Index of the order queue (default: 1)")
    parser.add_argument(
        "--bootstrap-timeout", type=float,
        help="Seconds to wait for valid order queue pointers (default: 5)",
    )
    parser.add_argument("--log-level", help="Logging level, e.g. DEBUG")

    subparsers = parser.add_subparsers(dest="command", required=True)

    queue_order = subparsers.add_parser("queue-order", help="Queue a single order entry")
    source = queue_order.add_mutually_exclusive_group(required=True)
    source.add_argument("--order", help="Order entry as a JSON object")
    source.add_argument("--order-file", help="Path to a JSON file holding the order entry")
    queue_order.add_argument(
        "--block", action="store_true",
        help="Wait for a free slot instead of failing when the order queue is full",
    )

    drain = subparsers.add_parser("drain", help="Read order results until interrupted")
    drain.add_argument("--mqtt", action="store_true", help="Publish results to the MQTT broker")

    subparsers.add_parser("reset-results", help="Discard all unread order results")

    start_cycle = subparsers.add_parser("start-cycle", help="Start the production cycle")
    start_cycle.add_argument("--timeout", type=float, help="Seconds to wait for the cycle to run")

    location = subparsers.add_parser("handle-location", help="Answer container move requests of a location")
    location.add_argument("--location-index", type=int, required=True, help="Index of the location")
    location.add_argument("--container-id", required=True, help="ID of the container moved in")

    return parser


def _load_order(args: argparse.Namespace) -> dict:
    if args.order_file:
        with open(args.order_file, "r", encoding="utf-8") as f:
            order_entry = json.load(f)
    else:
        order_entry = json.loads(args.order)
    if not isinstance(order_entry, dict):
        raise ValueError(f"order entry must be a JSON object, got {type(order_entry).__name__}")
    return order_entry


def _bootstrap(client: GraphClient, settings: ClientSettings,
               policy: FullQueuePolicy = FullQueuePolicy.FAIL_FAST) -> OrderManager:
    order_manager = OrderManager(
        client,
        queue_index=settings.queue_index,
        full_queue_policy=policy,
        poll_interval=settings.poll_interval,
        full_log_interval=settings.queue_full_log_interval,
    )
    order_manager.initialize_order_pointers(settings.bootstrap_timeout)
    return order_manager


def run_command(args: argparse.Namespace, settings: ClientSettings,
                client: GraphClient, stop_event: threading.Event) -> int:
    """Execute one subcommand against a connected client."""
    if args.command == "queue-order":
        try:
            order_entry = _load_order(args)
        except (OSError, ValueError) as e:
            logger.error("Cannot read order entry: %s", e)
            return 2
        policy = FullQueuePolicy.BLOCK if args.block else FullQueuePolicy.FAIL_FAST
        order_manager = _bootstrap(client, settings, policy)
        order_manager.queue_order(order_entry, stop_event=stop_event)
        logger.info("Queued order: %s", order_entry)

    elif args.command == "drain":
        order_manager = _bootstrap(client, settings)
        sink = LoggingResultSink()
        if args.mqtt:
            sink = MqttResultSink(
                settings.queue_index,
                broker=settings.mqtt_broker,
                port=settings.mqtt_port,
                topic_prefix=settings.mqtt_topic_prefix,
            )
        drain_loop = ResultDrainLoop(
            order_manager, sink,
            poll_interval=settings.poll_interval,
            error_interval=settings.error_retry_interval,
        )
        try:
            drain_loop.run(stop_event)
        finally:
            if isinstance(sink, MqttResultSink):
                sink.close()

    elif args.command == "reset-results":
        order_manager = _bootstrap(client, settings)
        discarded = order_manager.reset_results()
        logger.info("Reset order result queue %d, discarded %d results", settings.queue_index, discarded)

    elif args.command == "start-cycle":
        start_production_cycle(
            client, timeout=args.timeout,
            poll_interval=settings.poll_interval, stop_event=stop_event,
        )

    elif args.command == "handle-location":
        handler = LocationMoveHandler(
            client,
            LocationConfig.for_location(args.location_index, args.container_id),
            poll_interval=settings.poll_interval,
            error_interval=settings.error_retry_interval,
        )
        handler.run(stop_event)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point of the ``production-cycle`` command."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    settings = ClientSettings.from_env(
        url=args.url,
        username=args.username,
        password=args.password,
        queue_index=args.queue_index,
        bootstrap_timeout=args.bootstrap_timeout,
    )

    stop_event = threading.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, lambda signum, frame: stop_event.set())

    try:
        with GraphClient(settings.url, settings.username, settings.password,
                         timeout=settings.http_timeout) as client:
            client.start_subscription()
            if not client.wait_for_state(timeout=settings.bootstrap_timeout):
                raise RemoteError(f"No controller state received from {client.websocket_endpoint}")
            return run_command(args, settings, client, stop_event)
    except ProductionCycleError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
