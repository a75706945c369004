"""
ORM models. Importing this package registers every table on Base.metadata,
which alembic and DatabaseStorage rely on.
"""

from findmyhelper.models.category import ServiceCategory
from findmyhelper.models.provider import ApprovalStatus, ServiceProvider
from findmyhelper.models.review import Review
from findmyhelper.models.service_request import ServiceRequest, ServiceRequestStatus
from findmyhelper.models.session import UserSession
from findmyhelper.models.task import Task, TaskStatus
from findmyhelper.models.user import User

__all__ = [
    "ApprovalStatus",
    "Review",
    "ServiceCategory",
    "ServiceProvider",
    "ServiceRequest",
    "ServiceRequestStatus",
    "Task",
    "TaskStatus",
    "User",
    "UserSession",
]
