"""Pydantic schemas for wallet pass API endpoints."""

from uuid import UUID

from ninja import Schema
from pydantic import Field


class DeviceRegistrationPayload(Schema):
    """Payload sent by device when registering for pass updates."""

    pushToken: str = Field(..., min_length=1, max_length=255, description="Push token for sending notifications")


class SerialNumbersResponse(Schema):
    """Response containing list of updated pass serial numbers."""

    serialNumbers: list[str] = Field(default_factory=list)
    lastUpdated: str = Field(..., description="Opaque update tag to send back as passesUpdatedSince")


class LogPayload(Schema):
    """Payload for device error logging."""

    logs: list[str]


class IssuePassPayload(Schema):
    """Request body for issuing a customer's pass."""

    customerId: UUID
