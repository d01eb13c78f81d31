"""
Production Cycle Client - GraphQL Wire Models

Pydantic models for the controller's GraphQL HTTP responses and for the
graphql-ws subscription frames.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GraphQLResponse(BaseModel):
    """Envelope of a GraphQL HTTP response."""
    model_config = ConfigDict(extra="allow")

    data: Optional[Dict[str, Any]] = None
    errors: Optional[List[Any]] = None

    def command_result(self, field_name: str = "CommandRobotBridges") -> Any:
        """Return ``data[field_name]`` or None when the response carries no data."""
        if not self.data:
            return None
        return self.data.get(field_name)


class RobotBridgesState(BaseModel):
    """IO values pushed by the ``SubscribeRobotBridgesState`` subscription.

    Both members are lists of ``[ioName, ioValue]`` pairs.
    """
    model_config = ConfigDict(extra="allow")

    sentiovalues: List[List[Any]] = Field(default_factory=list)
    receivediovalues: List[List[Any]] = Field(default_factory=list)

    @field_validator("sentiovalues", "receivediovalues", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


class SubscriptionMessage(BaseModel):
    """One graphql-ws frame received on the subscription socket."""
    model_config = ConfigDict(extra="allow")

    type: str
    id: Optional[str] = None
    payload: Optional[Any] = None

    def robot_bridges_state(self) -> Optional[RobotBridgesState]:
        """Extract the subscription state from a ``data`` frame."""
        if not isinstance(self.payload, dict):
            return None
        data = self.payload.get("data") or {}
        state = data.get("SubscribeRobotBridgesState")
        if state is None:
            return None
        return RobotBridgesState.model_validate(state)
