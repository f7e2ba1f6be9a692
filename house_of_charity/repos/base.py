# house_of_charity/repos/base.py
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional


class Repository(ABC):
    """
    Storage contract shared by the mock, SQL and hosted-service backends.

    All methods return normalized dicts (see ``repos.normalize``). Backend
    failures raise ``BackendError``; "not found" is ``None`` / ``False``.
    """

    mode: str = "unknown"

    def __init__(self):
        self.status: Dict[str, Any] = {}

    async def startup(self) -> None:
        pass

    async def shutdown(self) -> None:
        pass

    # Users
    @abstractmethod
    async def find_user_by_id(self, user_id: str) -> Optional[dict]: ...

    @abstractmethod
    async def find_user_by_email(self, email: str) -> Optional[dict]: ...

    @abstractmethod
    async def list_users(self, user_type: Optional[str] = None) -> List[dict]: ...

    @abstractmethod
    async def create_user(self, user_type: str, payload: dict) -> dict: ...

    @abstractmethod
    async def update_user(self, user_id: str, updates: dict) -> Optional[dict]: ...

    # Connections
    @abstractmethod
    async def link_donor_ngo(self, donor_id: str, ngo_id: str) -> None: ...

    @abstractmethod
    async def unlink_donor_ngo(self, donor_id: str, ngo_id: str) -> None: ...

    @abstractmethod
    async def list_connected_donors(self, ngo_id: str) -> List[dict]: ...

    @abstractmethod
    async def list_connected_ngos(self, donor_id: str) -> List[dict]: ...

    # Donations
    @abstractmethod
    async def find_donation_by_id(self, donation_id: str) -> Optional[dict]: ...

    @abstractmethod
    async def list_donations(
        self,
        donor_id: Optional[str] = None,
        ngo_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[dict]: ...

    @abstractmethod
    async def create_donation(self, payload: dict) -> dict: ...

    @abstractmethod
    async def update_donation(self, donation_id: str, updates: dict) -> Optional[dict]: ...

    # Requirements
    @abstractmethod
    async def find_requirement_by_id(self, requirement_id: str) -> Optional[dict]: ...

    @abstractmethod
    async def list_requirements(
        self,
        ngo_id: Optional[str] = None,
        status: Optional[str] = None,
        category: Optional[str] = None,
    ) -> List[dict]: ...

    @abstractmethod
    async def create_requirement(self, payload: dict) -> dict: ...

    @abstractmethod
    async def update_requirement(self, requirement_id: str, updates: dict) -> Optional[dict]: ...

    @abstractmethod
    async def delete_requirement(self, requirement_id: str) -> bool: ...

    # Notifications
    @abstractmethod
    async def create_notifications(self, rows: Iterable[dict]) -> List[dict]: ...

    @abstractmethod
    async def list_notifications(
        self, user_id: str, unread_only: bool = False, limit: Optional[int] = None
    ) -> List[dict]: ...

    @abstractmethod
    async def count_unread_notifications(self, user_id: str) -> int: ...

    @abstractmethod
    async def mark_notifications_read(
        self, user_id: str, ids: Optional[List[str]] = None
    ) -> int: ...
