"""
配送资格校验
在请求支付授权前检查每个购物车行是否可以在所选配送日送到所选楼宇

一个商品可配送，当且仅当所选配送日在其可配送星期内，且所选楼宇在其可配送楼宇内。
配送日或楼宇未选择时一律判定为不通过（原因与商品不可配送区分）。
"""

from enum import Enum
from typing import Iterable, List, Optional, Sequence, Set

from pydantic import BaseModel, Field

from ..core.exceptions import IneligibleItemsError, SelectionIncompleteError
from ..models.cart import CartLine
from ..models.location import DeliveryBuilding
from ..models.lunchbox import Weekday


class EligibilityReason(str, Enum):
    OK = "ok"
    SELECTION_INCOMPLETE = "selection_incomplete"
    INELIGIBLE_ITEMS = "ineligible_items"


class IneligibleItem(BaseModel):
    """不可配送的商品及原因"""
    lunchbox_id: int
    name: str = ""
    day_unavailable: bool = False
    building_unavailable: bool = False


class EligibilityResult(BaseModel):
    """校验结果"""
    valid: bool
    reason: EligibilityReason
    missing: List[str] = Field(default_factory=list)
    ineligible_items: List[IneligibleItem] = Field(default_factory=list)


def _normalize_day(day) -> Optional[Weekday]:
    if day is None or day == "":
        return None
    return Weekday(str(getattr(day, "value", day)).lower())


def validate(
    lines: Iterable[CartLine],
    selected_day,
    selected_building_id: Optional[int],
) -> EligibilityResult:
    """校验购物车在所选配送日和楼宇下是否全部可配送"""
    day = _normalize_day(selected_day)
    missing = []
    if day is None:
        missing.append("delivery_day")
    if selected_building_id is None:
        missing.append("delivery_building_id")
    if missing:
        return EligibilityResult(
            valid=False,
            reason=EligibilityReason.SELECTION_INCOMPLETE,
            missing=missing,
        )

    ineligible = []
    for line in lines:
        day_ok = day in line.available_days
        building_ok = selected_building_id in line.eligible_building_ids
        if not (day_ok and building_ok):
            ineligible.append(IneligibleItem(
                lunchbox_id=line.lunchbox_id,
                name=line.name,
                day_unavailable=not day_ok,
                building_unavailable=not building_ok,
            ))

    if ineligible:
        return EligibilityResult(
            valid=False,
            reason=EligibilityReason.INELIGIBLE_ITEMS,
            ineligible_items=ineligible,
        )
    return EligibilityResult(valid=True, reason=EligibilityReason.OK)


def ensure_eligible(
    lines: Iterable[CartLine],
    selected_day,
    selected_building_id: Optional[int],
) -> None:
    """校验不通过时抛出带具体原因的业务异常"""
    result = validate(lines, selected_day, selected_building_id)
    if result.reason == EligibilityReason.SELECTION_INCOMPLETE:
        raise SelectionIncompleteError(result.missing)
    if result.reason == EligibilityReason.INELIGIBLE_ITEMS:
        raise IneligibleItemsError([item.model_dump() for item in result.ineligible_items])


def common_building_ids(lines: Sequence[CartLine]) -> Set[int]:
    """所有购物车行都可配送的楼宇（交集）"""
    if not lines:
        return set()
    result = set(lines[0].eligible_building_ids)
    for line in lines[1:]:
        result &= set(line.eligible_building_ids)
    return result


def available_buildings(
    lines: Sequence[CartLine],
    buildings: Iterable[DeliveryBuilding],
) -> List[DeliveryBuilding]:
    """供用户选择的楼宇：启用中且所有商品均可配送"""
    allowed = common_building_ids(lines)
    return [b for b in buildings if b.is_active and b.id in allowed]


def available_days(lines: Sequence[CartLine]) -> List[Weekday]:
    """所有商品均可配送的星期，按周一到周日排序"""
    if not lines:
        return []
    days = set(lines[0].available_days)
    for line in lines[1:]:
        days &= set(line.available_days)
    return [d for d in Weekday if d in days]
