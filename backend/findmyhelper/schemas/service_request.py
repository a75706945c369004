"""Service request payloads and the two party-specific list views."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from findmyhelper.models.service_request import ServiceRequestStatus
from findmyhelper.schemas.common import ApiModel
from findmyhelper.schemas.provider import ProviderListItem
from findmyhelper.schemas.task import TaskResponse
from findmyhelper.schemas.user import UserContactResponse


class ServiceRequestCreate(ApiModel):
    provider_id: int
    task_id: Optional[int] = None
    proposed_price: Optional[float] = Field(default=None, ge=0)
    message: str = Field(min_length=1, max_length=5000)


class ServiceRequestUpdate(ApiModel):
    status: Optional[ServiceRequestStatus] = None
    proposed_price: Optional[float] = Field(default=None, ge=0)
    message: Optional[str] = Field(default=None, min_length=1, max_length=5000)


class ServiceRequestResponse(ApiModel):
    id: int
    client_id: int
    provider_id: int
    task_id: Optional[int] = None
    proposed_price: Optional[float] = None
    message: str
    status: ServiceRequestStatus
    created_at: datetime


class ClientServiceRequestView(ServiceRequestResponse):
    """A request as seen by the client who sent it."""

    provider: Optional[ProviderListItem] = None
    task: Optional[TaskResponse] = None


class ProviderServiceRequestView(ServiceRequestResponse):
    """A request as seen by the provider who received it."""

    client: Optional[UserContactResponse] = None
    task: Optional[TaskResponse] = None
