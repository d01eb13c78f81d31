"""
Production Cycle Client - Controller Channel Package
"""

from .channel import RemoteStateChannel
from .graph_client import GraphClient
from .messages import GraphQLResponse, RobotBridgesState, SubscriptionMessage
from .snapshot import IOSnapshot, SnapshotCache, io_pairs_to_map

__all__ = [
    "RemoteStateChannel", "GraphClient",
    "GraphQLResponse", "RobotBridgesState", "SubscriptionMessage",
    "IOSnapshot", "SnapshotCache", "io_pairs_to_map",
]
