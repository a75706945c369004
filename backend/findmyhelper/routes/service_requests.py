"""
Service requests between a client and an approved provider.

GET /client and GET /provider return each party's own view: the client
sees the provider's profile, the provider sees the client's contact
details. Either party may update a request.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from findmyhelper.dependencies import get_current_user, get_marketplace
from findmyhelper.models import ServiceRequest, User
from findmyhelper.schemas.common import ErrorResponse
from findmyhelper.schemas.service_request import (
    ClientServiceRequestView,
    ProviderServiceRequestView,
    ServiceRequestCreate,
    ServiceRequestResponse,
    ServiceRequestUpdate,
)
from findmyhelper.services.marketplace import MarketplaceService

router = APIRouter(prefix="/api/service-requests", tags=["Service Requests"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ServiceRequestResponse,
    responses={
        400: {"description": "Invalid input or own provider profile", "model": ErrorResponse},
        403: {"description": "Task belongs to someone else", "model": ErrorResponse},
        404: {"description": "Provider or task not found", "model": ErrorResponse},
    },
    summary="Send a service request to a provider",
)
async def create_service_request(
    data: ServiceRequestCreate,
    user: User = Depends(get_current_user),
    marketplace: MarketplaceService = Depends(get_marketplace),
) -> ServiceRequest:
    return await marketplace.create_service_request(user, data)


@router.get(
    "/client",
    response_model=List[ClientServiceRequestView],
    responses={401: {"description": "Not logged in", "model": ErrorResponse}},
    summary="Requests the caller has sent",
)
async def list_client_requests(
    user: User = Depends(get_current_user),
    marketplace: MarketplaceService = Depends(get_marketplace),
) -> List[ClientServiceRequestView]:
    return await marketplace.list_for_client(user)


@router.get(
    "/provider",
    response_model=List[ProviderServiceRequestView],
    responses={
        401: {"description": "Not logged in", "model": ErrorResponse},
        404: {"description": "Caller has no provider profile", "model": ErrorResponse},
    },
    summary="Requests addressed to the caller's provider profile",
)
async def list_provider_requests(
    user: User = Depends(get_current_user),
    marketplace: MarketplaceService = Depends(get_marketplace),
) -> List[ProviderServiceRequestView]:
    return await marketplace.list_for_provider(user)


@router.put(
    "/{request_id}",
    response_model=ServiceRequestResponse,
    responses={
        403: {"description": "Not a party to this request", "model": ErrorResponse},
        404: {"description": "Request not found", "model": ErrorResponse},
    },
    summary="Update a service request (status, price, message)",
)
async def update_service_request(
    request_id: int,
    data: ServiceRequestUpdate,
    user: User = Depends(get_current_user),
    marketplace: MarketplaceService = Depends(get_marketplace),
) -> ServiceRequest:
    return await marketplace.update_service_request(user, request_id, data)
