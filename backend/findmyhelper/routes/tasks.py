"""Client tasks: create, browse, and owner-only edit/delete."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from findmyhelper.dependencies import get_current_user, get_marketplace
from findmyhelper.models import Task, User
from findmyhelper.schemas.common import ErrorResponse
from findmyhelper.schemas.task import TaskCreate, TaskResponse, TaskUpdate
from findmyhelper.services.marketplace import MarketplaceService

router = APIRouter(prefix="/api", tags=["Tasks"])

_owner_errors = {
    401: {"description": "Not logged in", "model": ErrorResponse},
    403: {"description": "Not your task", "model": ErrorResponse},
    404: {"description": "Task not found", "model": ErrorResponse},
}


@router.post(
    "/tasks",
    status_code=status.HTTP_201_CREATED,
    response_model=TaskResponse,
    responses={
        400: {"description": "Invalid input or unknown category", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
    },
    summary="Post a task",
)
async def create_task(
    data: TaskCreate,
    user: User = Depends(get_current_user),
    marketplace: MarketplaceService = Depends(get_marketplace),
) -> Task:
    return await marketplace.create_task(user, data)


@router.get("/tasks", response_model=List[TaskResponse], summary="List tasks")
async def list_tasks(
    category_id: Optional[int] = Query(default=None, alias="categoryId"),
    marketplace: MarketplaceService = Depends(get_marketplace),
) -> List[Task]:
    return await marketplace.list_tasks(category_id=category_id)


@router.get(
    "/tasks/client",
    response_model=List[TaskResponse],
    responses={401: {"description": "Not logged in", "model": ErrorResponse}},
    summary="List the caller's own tasks",
)
async def list_my_tasks(
    user: User = Depends(get_current_user),
    marketplace: MarketplaceService = Depends(get_marketplace),
) -> List[Task]:
    return await marketplace.list_client_tasks(user)


@router.get(
    "/tasks/{task_id}",
    response_model=TaskResponse,
    responses={404: {"description": "Task not found", "model": ErrorResponse}},
    summary="Get one task",
)
async def get_task(
    task_id: int,
    marketplace: MarketplaceService = Depends(get_marketplace),
) -> Task:
    return await marketplace.get_task(task_id)


@router.put(
    "/tasks/{task_id}",
    response_model=TaskResponse,
    responses=_owner_errors,
    summary="Update your task",
)
async def update_task(
    task_id: int,
    data: TaskUpdate,
    user: User = Depends(get_current_user),
    marketplace: MarketplaceService = Depends(get_marketplace),
) -> Task:
    return await marketplace.update_task(user, task_id, data)


@router.delete(
    "/tasks/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=_owner_errors,
    summary="Delete your task",
)
async def delete_task(
    task_id: int,
    user: User = Depends(get_current_user),
    marketplace: MarketplaceService = Depends(get_marketplace),
) -> Response:
    await marketplace.delete_task(user, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
