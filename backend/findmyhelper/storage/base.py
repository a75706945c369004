"""
FindMyHelper Backend — Abstract Storage Interface
===================================================

What:  The persistence contract every backend implements: CRUD over users,
       categories, providers, tasks, service requests and reviews, plus
       the server-side session store.
How:   Concrete backends inherit from Storage (strategy pattern). Services
       only ever see this interface.
Who:   MemoryStorage (volatile dicts) and DatabaseStorage (SQLAlchemy).

Contract:
    - Entities are the ORM classes from findmyhelper.models. Backends
      return them detached from any session; callers treat them as read
      only and change state through the update_* methods.
    - get_* returns None for a missing row; it never raises NotFoundError.
    - update_* applies the given field changes and returns the updated
      entity, or None when the row does not exist.
    - create_review stores the review and recomputes the provider's rating
      as one atomic step.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Mapping, Optional, Tuple

from findmyhelper.models import (
    Review,
    ServiceCategory,
    ServiceProvider,
    ServiceRequest,
    Task,
    User,
    UserSession,
)

# (name, description, icon) seeded into an empty category table
DEFAULT_CATEGORIES: Tuple[Tuple[str, str, str], ...] = (
    ("Home Cleaning", "Professional home cleaning services", "broom"),
    ("Handyman", "General home repairs and maintenance", "hammer"),
    ("Moving Help", "Assistance with packing and moving", "truck"),
    ("Tech Support", "Computer and device troubleshooting", "laptop-code"),
    ("Painting", "Interior and exterior painting", "paint-roller"),
    ("Lawn Care", "Lawn mowing and garden maintenance", "leaf"),
    ("Tutoring", "Academic tutoring and test preparation", "book-open"),
    ("Pet Care", "Pet sitting, walking and grooming", "paw-print"),
)


def mean_rating(total: int, count: int) -> float:
    """
    Arithmetic mean of `count` ratings summing to `total`, rounded half-up
    to one decimal place. 0.0 when there are no ratings.

    >>> mean_rating(14, 3)
    4.7
    >>> mean_rating(9, 2)
    4.5
    """
    if not count:
        return 0.0
    mean = Decimal(int(total)) / Decimal(int(count))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class Storage(ABC):
    """Persistence interface shared by the memory and database backends."""

    # Reported by /health and in startup logs
    backend_name: str = "abstract"

    # ── Lifecycle ─────────────────────────────────────────────────────────

    @abstractmethod
    async def initialize(self) -> None:
        """
        Prepare the backend for use and seed the category taxonomy.

        Raises:
            StorageConfigurationError: the backend cannot be reached or its
            schema cannot be created.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release connections and other resources."""

    @abstractmethod
    async def ping(self) -> bool:
        """Cheap reachability probe used by the health check."""

    # ── Users ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_firebase_uid(self, firebase_uid: str) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_verification_token(self, token: str) -> Optional[User]: ...

    @abstractmethod
    async def create_user(self, user: User) -> User: ...

    @abstractmethod
    async def update_user(self, user_id: int, changes: Mapping[str, Any]) -> Optional[User]: ...

    @abstractmethod
    async def list_admins(self) -> List[User]: ...

    # ── Categories ────────────────────────────────────────────────────────

    @abstractmethod
    async def list_categories(self) -> List[ServiceCategory]: ...

    @abstractmethod
    async def get_category(self, category_id: int) -> Optional[ServiceCategory]: ...

    @abstractmethod
    async def create_category(self, category: ServiceCategory) -> ServiceCategory: ...

    # ── Service Providers ─────────────────────────────────────────────────

    @abstractmethod
    async def create_provider(self, provider: ServiceProvider) -> ServiceProvider: ...

    @abstractmethod
    async def get_provider(self, provider_id: int) -> Optional[ServiceProvider]: ...

    @abstractmethod
    async def get_provider_by_user_id(self, user_id: int) -> Optional[ServiceProvider]: ...

    @abstractmethod
    async def list_providers(
        self,
        approval_status: Optional[str] = None,
        category_id: Optional[int] = None,
    ) -> List[ServiceProvider]: ...

    @abstractmethod
    async def update_provider(
        self, provider_id: int, changes: Mapping[str, Any]
    ) -> Optional[ServiceProvider]: ...

    @abstractmethod
    async def transition_provider(
        self,
        provider_id: int,
        expected_status: str,
        changes: Mapping[str, Any],
    ) -> Optional[ServiceProvider]:
        """
        Apply `changes` only if approval_status still equals `expected_status`.

        Returns the updated provider, or None when the provider is missing
        or its status has already moved on (another reviewer got there first).
        """

    # ── Tasks ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def create_task(self, task: Task) -> Task: ...

    @abstractmethod
    async def get_task(self, task_id: int) -> Optional[Task]: ...

    @abstractmethod
    async def list_tasks(
        self,
        client_id: Optional[int] = None,
        category_id: Optional[int] = None,
    ) -> List[Task]: ...

    @abstractmethod
    async def update_task(self, task_id: int, changes: Mapping[str, Any]) -> Optional[Task]: ...

    @abstractmethod
    async def delete_task(self, task_id: int) -> bool:
        """Delete a task; requests that referenced it keep existing with task_id=None."""

    # ── Service Requests ──────────────────────────────────────────────────

    @abstractmethod
    async def create_service_request(self, request: ServiceRequest) -> ServiceRequest: ...

    @abstractmethod
    async def get_service_request(self, request_id: int) -> Optional[ServiceRequest]: ...

    @abstractmethod
    async def list_service_requests(
        self,
        client_id: Optional[int] = None,
        provider_id: Optional[int] = None,
    ) -> List[ServiceRequest]: ...

    @abstractmethod
    async def update_service_request(
        self, request_id: int, changes: Mapping[str, Any]
    ) -> Optional[ServiceRequest]: ...

    @abstractmethod
    async def complete_service_request(
        self, request_id: int, changes: Mapping[str, Any]
    ) -> Tuple[Optional[ServiceRequest], bool]:
        """
        Apply `changes` and set status to completed, atomically.

        Only the call that moves the request into `completed` adds one to
        the provider's completed_jobs; repeats and concurrent duplicates
        do not count again.

        Returns:
            (request, newly_completed). request is None when it does not exist.
        """

    # ── Reviews ───────────────────────────────────────────────────────────

    @abstractmethod
    async def create_review(self, review: Review) -> Tuple[Review, ServiceProvider]:
        """
        Insert `review` and set the provider's rating to the mean of all of
        its reviews (see mean_rating), atomically.

        Returns:
            The stored review and the provider with its new rating.

        Raises:
            NotFoundError: review.provider_id does not exist.
            ConflictError: a review for this service request already exists.
        """

    @abstractmethod
    async def list_reviews_by_provider(self, provider_id: int) -> List[Review]: ...

    @abstractmethod
    async def get_review_by_service_request(self, request_id: int) -> Optional[Review]: ...

    # ── Sessions ──────────────────────────────────────────────────────────

    @abstractmethod
    async def create_session(self, session: UserSession) -> UserSession: ...

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[UserSession]: ...

    @abstractmethod
    async def delete_session(self, session_id: str) -> None: ...

    @abstractmethod
    async def purge_expired_sessions(self, now: datetime) -> int:
        """Delete sessions whose expires_at is before `now`; returns how many."""
