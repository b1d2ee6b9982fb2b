"""Who is asking, and what they may do with an order."""

from dataclasses import dataclass
from enum import Enum


class Role(Enum):
    CLIENT = "client"
    DISTRIBUTOR = "distributor"
    ADMIN = "admin"


@dataclass(frozen=True)
class Requester:
    """The authenticated caller of an ordering operation."""

    user_id: str
    role: str = Role.CLIENT.value

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @property
    def is_distributor(self) -> bool:
        return self.role == Role.DISTRIBUTOR.value

    def owns(self, order) -> bool:
        return str(order.customer_id) == str(self.user_id)

    def supplies(self, order) -> bool:
        """True when the requester is a distributor of at least one item in `order`."""
        return self.is_distributor and any(str(item.distributor_id) == str(self.user_id) for item in order.items)

    def can_view(self, order) -> bool:
        return self.is_admin or self.owns(order) or self.supplies(order)

    def can_cancel(self, order) -> bool:
        return self.is_admin or self.owns(order)
