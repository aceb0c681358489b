"""
购物车聚合
每个客户会话持有一个购物车，商品单价等字段在加入时快照
"""

from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Set

from ..core.exceptions import MultiRestaurantCartError
from .lunchbox import Lunchbox, Weekday


class CartLine(BaseModel):
    """购物车行"""
    lunchbox_id: int = Field(..., description="午餐盒ID")
    name: str = Field("", description="商品名称")
    quantity: int = Field(1, ge=1, description="数量")
    unit_price: Decimal = Field(..., description="加入时的单价快照")
    restaurant_id: int = Field(..., description="餐厅ID")
    restaurant_name: str = Field("", description="餐厅名称")
    restaurant_delivery_fee: Decimal = Field(..., description="加入时的餐厅配送费")
    available_days: Set[Weekday] = Field(default_factory=set, description="可配送的星期")
    eligible_building_ids: Set[int] = Field(default_factory=set, description="可配送的楼宇")

    @classmethod
    def from_lunchbox(
        cls,
        lunchbox: Lunchbox,
        restaurant_name: str,
        restaurant_delivery_fee: Decimal,
        quantity: int = 1,
    ) -> "CartLine":
        return cls(
            lunchbox_id=lunchbox.id,
            name=lunchbox.name,
            quantity=quantity,
            unit_price=lunchbox.price,
            restaurant_id=lunchbox.restaurant_id,
            restaurant_name=restaurant_name,
            restaurant_delivery_fee=restaurant_delivery_fee,
            available_days=set(lunchbox.available_days),
            eligible_building_ids=set(lunchbox.eligible_building_ids),
        )


class Cart:
    """
    购物车

    加入时允许混合多家餐厅的商品，结账时再拒绝；
    enforce_single_restaurant 为真时在加入时即拒绝。
    """

    def __init__(self, enforce_single_restaurant: bool = False):
        self.enforce_single_restaurant = enforce_single_restaurant
        self._lines: Dict[int, CartLine] = {}

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def get(self, lunchbox_id: int) -> Optional[CartLine]:
        return self._lines.get(lunchbox_id)

    def add_item(
        self,
        lunchbox: Lunchbox,
        restaurant_name: str,
        restaurant_delivery_fee: Decimal,
    ) -> CartLine:
        """加入商品；已存在时数量加一，快照字段以首次加入为准"""
        existing = self._lines.get(lunchbox.id)
        if existing is not None:
            existing.quantity += 1
            return existing

        if self.enforce_single_restaurant and self._lines:
            restaurant_ids = self.restaurant_ids | {lunchbox.restaurant_id}
            if len(restaurant_ids) > 1:
                raise MultiRestaurantCartError(restaurant_ids)

        line = CartLine.from_lunchbox(lunchbox, restaurant_name, restaurant_delivery_fee)
        self._lines[lunchbox.id] = line
        return line

    def remove_item(self, lunchbox_id: int) -> None:
        self._lines.pop(lunchbox_id, None)

    def update_quantity(self, lunchbox_id: int, quantity: int) -> None:
        """数量小于等于0时等同于移除"""
        if quantity <= 0:
            self.remove_item(lunchbox_id)
            return
        line = self._lines.get(lunchbox_id)
        if line is not None:
            line.quantity = quantity

    def clear(self) -> None:
        self._lines.clear()

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    @property
    def restaurant_ids(self) -> Set[int]:
        return {line.restaurant_id for line in self._lines.values()}

    @property
    def is_single_restaurant(self) -> bool:
        return len(self.restaurant_ids) <= 1

    @property
    def delivery_fee(self) -> Decimal:
        """整车配送费取第一行记录的配送费（混合餐厅的购物车在结账时会被拒绝）"""
        for line in self._lines.values():
            return line.restaurant_delivery_fee
        return Decimal("0.00")

    def __len__(self) -> int:
        return len(self._lines)
