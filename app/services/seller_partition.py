from typing import Dict, List
from pydantic import BaseModel

from app.schemas.cart_schemas import CartLine


class SellerPartition(BaseModel):
    """Cart lines billed to one seller as one order. Never persisted."""

    seller_id: int
    lines: List[CartLine]

    @property
    def subtotal(self) -> float:
        return sum(line.price * line.quantity for line in self.lines)


def partition_by_seller(lines: List[CartLine]) -> Dict[int, SellerPartition]:
    """
    Group lines by seller, in the order sellers first appear.

    Lines without a resolvable seller are skipped: they cannot be billed
    to anyone. Use ``unresolved_lines`` to report them.
    """
    partitions: Dict[int, SellerPartition] = {}

    for line in lines:
        seller_id = line.seller_id
        if seller_id is None:
            continue
        if seller_id not in partitions:
            partitions[seller_id] = SellerPartition(seller_id=seller_id, lines=[])
        partitions[seller_id].lines.append(line)

    return partitions


def unresolved_lines(lines: List[CartLine]) -> List[CartLine]:
    return [line for line in lines if line.seller_id is None]
