from typing import Optional, Protocol

from src.core.allocation.models import IpsDocument


class IpsRepository(Protocol):
    def create_ips(self, ips: IpsDocument) -> None: ...

    def update_ips(self, ips: IpsDocument) -> None: ...

    def get_ips(self, *, ips_id: str) -> Optional[IpsDocument]: ...

    def list_ips(self, *, client_id: str) -> list[IpsDocument]: ...
