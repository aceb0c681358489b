"""
权限控制测试
每类资源都验证：角色权限、归属校验，以及越权后数据未被修改
"""

from decimal import Decimal

import pytest

from ..core.authorization import PERMISSIONS, Action, Resource, Scope, authorize, can
from ..core.exceptions import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from ..models.user import Role
from ..schemas.location import (
    BuildingCreateRequest,
    BuildingUpdateRequest,
    LocationCreateRequest,
    LocationUpdateRequest,
)
from ..schemas.lunchbox import LunchboxCreateRequest, LunchboxUpdateRequest
from ..schemas.restaurant import RestaurantCreateRequest, RestaurantUpdateRequest
from ..schemas.user import ProfileUpdateRequest
from ..services.location_service import location_service
from ..services.lunchbox_service import lunchbox_service
from ..services.order_service import order_service
from ..services.restaurant_service import restaurant_service
from ..services.user_service import user_service


class TestPermissionTable:
    """权限表测试"""

    def test_every_role_has_rules(self):
        assert set(PERMISSIONS) == set(Role)

    def test_customers_are_read_only_on_catalog(self, seed):
        for resource in (Resource.RESTAURANT, Resource.LUNCHBOX, Resource.DELIVERY_LOCATION):
            assert can(seed.customer, resource, Action.READ)
            assert not can(seed.customer, resource, Action.CREATE, owner_id=seed.customer.id)
            assert not can(seed.customer, resource, Action.UPDATE, owner_id=seed.customer.id)

    def test_admin_cannot_place_orders(self, seed):
        assert not can(seed.admin, Resource.ORDER, Action.CREATE, owner_id=seed.admin.id)

    def test_own_scope_requires_matching_owner(self, seed):
        assert can(seed.owner_x, Resource.LUNCHBOX, Action.UPDATE, owner_id=seed.owner_x.id)
        assert not can(seed.owner_x, Resource.LUNCHBOX, Action.UPDATE, owner_id=seed.owner_y.id)
        assert not can(seed.owner_x, Resource.LUNCHBOX, Action.UPDATE, owner_id=None)

    def test_admin_any_scope(self, seed):
        assert PERMISSIONS[Role.ADMIN][Resource.RESTAURANT][Action.DELETE] == Scope.ANY
        authorize(seed.admin, Resource.RESTAURANT, Action.DELETE, owner_id=seed.owner_x.id)


class TestRestaurantAuthorization:
    """餐厅权限测试"""

    def test_owner_cannot_update_other_restaurant(self, seed):
        with pytest.raises(AuthorizationError):
            restaurant_service.update_restaurant(
                seed.owner_x, seed.restaurant_y.id, RestaurantUpdateRequest(name="被篡改")
            )
        assert restaurant_service.get_restaurant(seed.restaurant_y.id).name == "粤式茶餐厅"

    def test_owner_updates_own_restaurant(self, seed):
        updated = restaurant_service.update_restaurant(
            seed.owner_x, seed.restaurant_x.id, RestaurantUpdateRequest(delivery_fee=Decimal("3.20"))
        )
        assert updated.delivery_fee == Decimal("3.20")

    def test_owner_cannot_reassign_owner(self, seed):
        with pytest.raises(AuthorizationError):
            restaurant_service.update_restaurant(
                seed.owner_x, seed.restaurant_x.id, RestaurantUpdateRequest(owner_id=seed.owner_y.id)
            )
        assert restaurant_service.get_restaurant(seed.restaurant_x.id).owner_id == seed.owner_x.id

    def test_admin_reassigns_owner(self, seed):
        updated = restaurant_service.update_restaurant(
            seed.admin, seed.restaurant_x.id, RestaurantUpdateRequest(owner_id=seed.owner_y.id)
        )
        assert updated.owner_id == seed.owner_y.id

    def test_admin_reassign_to_customer_rejected(self, seed):
        with pytest.raises(ValidationError):
            restaurant_service.update_restaurant(
                seed.admin, seed.restaurant_x.id, RestaurantUpdateRequest(owner_id=seed.customer.id)
            )

    def test_customer_cannot_create_restaurant(self, seed):
        with pytest.raises(AuthorizationError):
            restaurant_service.create_restaurant(
                seed.customer,
                RestaurantCreateRequest(name="私房菜", cuisine="家常", delivery_fee=Decimal("1.00")),
            )

    def test_owner_cannot_create_for_someone_else(self, seed):
        newcomer = user_service.create_user("owner-z", role=Role.RESTAURANT_OWNER)
        with pytest.raises(AuthorizationError):
            restaurant_service.create_restaurant(
                seed.owner_x,
                RestaurantCreateRequest(
                    name="私房菜", cuisine="家常", delivery_fee=Decimal("1.00"), owner_id=newcomer.id
                ),
            )

    def test_owner_creates_only_one_restaurant(self, seed):
        with pytest.raises(StateConflictError) as exc_info:
            restaurant_service.create_restaurant(
                seed.owner_x,
                RestaurantCreateRequest(name="第二家店", cuisine="川菜", delivery_fee=Decimal("1.00")),
            )
        assert exc_info.value.error_code == "RESTAURANT_ALREADY_EXISTS"

    def test_new_owner_creates_own_restaurant(self, seed):
        newcomer = user_service.create_user("owner-z", role=Role.RESTAURANT_OWNER)
        restaurant = restaurant_service.create_restaurant(
            newcomer,
            RestaurantCreateRequest(name="私房菜", cuisine="家常", delivery_fee=Decimal("1.00")),
        )
        assert restaurant.owner_id == newcomer.id

    def test_only_admin_deletes(self, seed):
        with pytest.raises(AuthorizationError):
            restaurant_service.delete_restaurant(seed.owner_x, seed.restaurant_x.id)
        restaurant_service.delete_restaurant(seed.admin, seed.restaurant_y.id)
        assert restaurant_service.get_restaurant(seed.restaurant_y.id) is None
        assert lunchbox_service.get_lunchbox(seed.lunchbox_c.id) is None

    def test_missing_restaurant_for_admin(self, seed):
        with pytest.raises(NotFoundError):
            restaurant_service.update_restaurant(seed.admin, 9999, RestaurantUpdateRequest(name="x"))


class TestLunchboxAuthorization:
    """午餐盒权限测试"""

    def test_owner_cannot_update_other_restaurants_item(self, seed):
        """店主X修改餐厅Y的商品被拒绝，商品不变"""
        with pytest.raises(AuthorizationError):
            lunchbox_service.update_lunchbox(
                seed.owner_x, seed.lunchbox_c.id, LunchboxUpdateRequest(price=Decimal("0.01"))
            )
        assert lunchbox_service.get_lunchbox(seed.lunchbox_c.id).price == Decimal("8.00")

    def test_owner_cannot_add_to_other_restaurant(self, seed):
        with pytest.raises(AuthorizationError):
            lunchbox_service.create_lunchbox(
                seed.owner_x, seed.restaurant_y.id,
                LunchboxCreateRequest(name="混入", description="x", price=Decimal("1.00")),
            )
        assert len(lunchbox_service.list_by_restaurant(seed.restaurant_y.id, seed.admin)) == 1

    def test_owner_cannot_delete_other_restaurants_item(self, seed):
        with pytest.raises(AuthorizationError):
            lunchbox_service.delete_lunchbox(seed.owner_x, seed.lunchbox_c.id)
        assert lunchbox_service.get_lunchbox(seed.lunchbox_c.id) is not None

    def test_owner_manages_own_items(self, seed):
        updated = lunchbox_service.update_lunchbox(
            seed.owner_x, seed.lunchbox_a.id, LunchboxUpdateRequest(price=Decimal("11.50"), dietary_tags=["辣"])
        )
        assert updated.price == Decimal("11.50")
        assert updated.dietary_tags == ["辣"]
        lunchbox_service.delete_lunchbox(seed.owner_x, seed.lunchbox_a.id)
        assert lunchbox_service.get_lunchbox(seed.lunchbox_a.id) is None

    def test_customer_denied_before_lookup(self, seed):
        """顾客修改不存在的商品也返回无权限，不暴露是否存在"""
        with pytest.raises(AuthorizationError):
            lunchbox_service.update_lunchbox(seed.customer, 9999, LunchboxUpdateRequest(name="x"))

    def test_owner_gets_not_found_for_missing_item(self, seed):
        with pytest.raises(NotFoundError):
            lunchbox_service.update_lunchbox(seed.owner_x, 9999, LunchboxUpdateRequest(name="x"))

    def test_default_buildings_from_restaurant_location(self, seed):
        assert seed.lunchbox_a.eligible_building_ids == [seed.building_a.id, seed.building_b.id]

    def test_buildings_outside_location_rejected(self, seed):
        with pytest.raises(ValidationError):
            lunchbox_service.update_lunchbox(
                seed.owner_x, seed.lunchbox_a.id,
                LunchboxUpdateRequest(eligible_building_ids=[seed.building_c.id]),
            )

    def test_customers_do_not_see_unavailable_items(self, seed):
        visible = {lb.id for lb in lunchbox_service.list_by_restaurant(seed.restaurant_x.id, seed.customer)}
        assert seed.lunchbox_d.id not in visible
        anonymous = {lb.id for lb in lunchbox_service.list_by_restaurant(seed.restaurant_x.id)}
        assert anonymous == visible
        owner_view = {lb.id for lb in lunchbox_service.list_by_restaurant(seed.restaurant_x.id, seed.owner_x)}
        assert seed.lunchbox_d.id in owner_view
        other_owner_view = {lb.id for lb in lunchbox_service.list_by_restaurant(seed.restaurant_x.id, seed.owner_y)}
        assert seed.lunchbox_d.id not in other_owner_view


class TestOrderAuthorization:
    """订单读取权限测试"""

    def test_customer_reads_own_order_only(self, seed, place_order):
        order = place_order()
        assert order_service.get_order(seed.customer, order.id).id == order.id
        with pytest.raises(AuthorizationError):
            order_service.get_order(seed.other_customer, order.id)

    def test_customer_missing_order_is_uniform_denial(self, seed):
        with pytest.raises(AuthorizationError):
            order_service.get_order(seed.customer, 9999)

    def test_owner_and_admin_get_not_found(self, seed):
        with pytest.raises(NotFoundError):
            order_service.get_order(seed.owner_x, 9999)
        with pytest.raises(NotFoundError):
            order_service.get_order(seed.admin, 9999)

    def test_owner_reads_own_restaurant_orders_only(self, seed, place_order):
        order = place_order()
        assert order_service.get_order(seed.owner_x, order.id).id == order.id
        with pytest.raises(AuthorizationError):
            order_service.get_order(seed.owner_y, order.id)
        with pytest.raises(AuthorizationError):
            order_service.get_order_items(seed.owner_y, order.id)

    def test_list_scoping(self, seed, place_order):
        from ..schemas.checkout import CartItemRequest

        x_order = place_order()
        y_order = place_order(customer=seed.other_customer, items=[CartItemRequest(lunchbox_id=seed.lunchbox_c.id)])

        assert [o.id for o in order_service.list_orders(seed.customer)] == [x_order.id]
        assert [o.id for o in order_service.list_orders(seed.other_customer)] == [y_order.id]
        assert [o.id for o in order_service.list_orders(seed.owner_x)] == [x_order.id]
        assert [o.id for o in order_service.list_orders(seed.owner_y)] == [y_order.id]
        assert {o.id for o in order_service.list_orders(seed.admin)} == {x_order.id, y_order.id}
        assert order_service.list_orders(seed.admin, status="confirmed") == []

    def test_items_follow_order_scope(self, seed, place_order):
        order = place_order()
        items = order_service.get_order_items(seed.customer, order.id)
        assert sorted(item.quantity for item in items) == [1, 2]


class TestLocationAuthorization:
    """配送地点与楼宇权限测试"""

    @pytest.mark.parametrize("actor", ["customer", "owner_x"])
    def test_non_admin_cannot_manage_locations(self, seed, actor):
        user = getattr(seed, actor)
        with pytest.raises(AuthorizationError):
            location_service.create_location(user, LocationCreateRequest(name="新园区", address="某路"))
        with pytest.raises(AuthorizationError):
            location_service.update_location(user, seed.park.id, LocationUpdateRequest(name="改名"))
        with pytest.raises(AuthorizationError):
            location_service.delete_location(user, seed.park.id)
        assert location_service.get_location(seed.park.id).name == "科技园"

    @pytest.mark.parametrize("actor", ["customer", "owner_x"])
    def test_non_admin_cannot_manage_buildings(self, seed, actor):
        user = getattr(seed, actor)
        with pytest.raises(AuthorizationError):
            location_service.create_building(user, seed.park.id, BuildingCreateRequest(name="D座"))
        with pytest.raises(AuthorizationError):
            location_service.update_building(user, seed.building_a.id, BuildingUpdateRequest(is_active=False))
        with pytest.raises(AuthorizationError):
            location_service.delete_building(user, seed.building_a.id)
        assert location_service.get_building(seed.building_a.id).is_active

    def test_admin_manages_locations(self, seed):
        location = location_service.create_location(seed.admin, LocationCreateRequest(name="新园区", address="某路"))
        building = location_service.create_building(seed.admin, location.id, BuildingCreateRequest(name="1号楼"))
        renamed = location_service.update_building(seed.admin, building.id, BuildingUpdateRequest(name="一号楼"))
        assert renamed.name == "一号楼"

        location_service.delete_location(seed.admin, location.id)
        assert location_service.get_location(location.id) is None
        assert location_service.get_building(building.id) is None

    def test_admin_missing_building(self, seed):
        with pytest.raises(NotFoundError):
            location_service.delete_building(seed.admin, 9999)


class TestProfileAuthorization:
    """个人资料权限测试"""

    def test_cannot_update_someone_elses_profile(self, seed):
        with pytest.raises(AuthorizationError):
            user_service.update_profile(seed.customer, seed.other_customer.id, ProfileUpdateRequest(full_name="x"))
        assert user_service.get_user(seed.other_customer.id).full_name == "李四"

    def test_update_own_profile(self, seed):
        updated = user_service.update_profile(
            seed.incomplete_customer, seed.incomplete_customer.id,
            ProfileUpdateRequest(phone_number=" 13900000000 "),
        )
        assert updated.phone_number == "13900000000"
        assert updated.profile_complete

    def test_inactive_location_rejected(self, seed):
        location_service.update_location(seed.admin, seed.tower.id, LocationUpdateRequest(is_active=False))
        with pytest.raises(ValidationError):
            user_service.update_profile(
                seed.customer, seed.customer.id, ProfileUpdateRequest(delivery_location_id=seed.tower.id)
            )

    def test_role_selection_once(self, seed):
        newcomer = user_service.get_or_create_by_external_id("fresh-user")
        assert newcomer.role == "customer"
        assert not newcomer.role_selected

        owner = user_service.select_role(newcomer, "restaurant_owner")
        assert owner.role == "restaurant_owner"
        with pytest.raises(StateConflictError):
            user_service.select_role(owner, "customer")

    def test_admin_role_not_self_assignable(self, seed):
        newcomer = user_service.get_or_create_by_external_id("fresh-user")
        with pytest.raises(ValidationError):
            user_service.select_role(newcomer, "admin")
