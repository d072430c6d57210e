# fulfillment/domain/caller.py
from dataclasses import dataclass, field
from typing import Optional

from fulfillment.domain.enums import Role


@dataclass(frozen=True)
class ExternalIdentity:
    """Verified identity as reported by the identity provider."""

    external_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class CallerContext:
    """Built once per request and passed into every core operation."""

    customer_id: int
    role: Role = field(default=Role.USER)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN
