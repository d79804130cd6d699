from copy import deepcopy
from threading import Lock
from typing import Optional

from src.core.allocation.models import IpsDocument
from src.core.allocation.repository import IpsRepository


class InMemoryIpsRepository(IpsRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._documents: dict[str, IpsDocument] = {}

    def create_ips(self, ips: IpsDocument) -> None:
        with self._lock:
            self._documents[ips.ips_id] = deepcopy(ips)

    def update_ips(self, ips: IpsDocument) -> None:
        with self._lock:
            self._documents[ips.ips_id] = deepcopy(ips)

    def get_ips(self, *, ips_id: str) -> Optional[IpsDocument]:
        with self._lock:
            document = self._documents.get(ips_id)
            return deepcopy(document) if document is not None else None

    def list_ips(self, *, client_id: str) -> list[IpsDocument]:
        with self._lock:
            return deepcopy([doc for doc in self._documents.values() if doc.client_id == client_id])
