"""
测试配置文件
提供测试所需的fixtures：内存数据库、模拟支付机构、基础数据和测试客户端
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from ..app import create_app
from ..core.database import db_manager
from ..core.security import create_access_token
from ..models.lunchbox import Weekday
from ..models.user import Role
from ..schemas.checkout import CartItemRequest
from ..schemas.location import BuildingCreateRequest, LocationCreateRequest
from ..schemas.lunchbox import LunchboxCreateRequest
from ..schemas.order import OrderCreateRequest
from ..schemas.restaurant import RestaurantCreateRequest
from ..services.cart_service import cart_service
from ..services.location_service import location_service
from ..services.lunchbox_service import lunchbox_service
from ..services.order_service import order_service
from ..services.payment_service import payment_service
from ..services.payments import FakeGateway, reset_gateway, set_gateway
from ..services.pricing import compute_totals
from ..services.restaurant_service import restaurant_service
from ..services.user_service import user_service


@pytest.fixture(autouse=True)
def test_db():
    """每个测试使用独立的内存数据库，重试不等待"""
    db_manager.configure(":memory:", retry_attempts=3, retry_base_delay=0)
    yield db_manager
    db_manager.close()


@pytest.fixture(autouse=True)
def fake_gateway():
    """模拟支付机构"""
    gateway = FakeGateway()
    set_gateway(gateway)
    yield gateway
    reset_gateway()


@pytest.fixture
def seed(test_db):
    """
    基础数据

    - 科技园（A座、B座）与金融中心（C座）两个配送地点
    - 店主X的川味小馆（配送费2.99）与店主Y的粤式茶餐厅（配送费3.50），均服务科技园
    - 川味小馆：A 10.00（工作日，A/B座）、B 5.50（仅周一周三，仅A座）、D 已下架
    - 粤式茶餐厅：C 8.00
    """
    admin = user_service.create_user("admin-1", role=Role.ADMIN, username="admin", full_name="管理员")
    owner_x = user_service.create_user("owner-x", role=Role.RESTAURANT_OWNER, full_name="店主X")
    owner_y = user_service.create_user("owner-y", role=Role.RESTAURANT_OWNER, full_name="店主Y")

    park = location_service.create_location(admin, LocationCreateRequest(name="科技园", address="科技路1号"))
    tower = location_service.create_location(admin, LocationCreateRequest(name="金融中心", address="金融街8号"))
    building_a = location_service.create_building(admin, park.id, BuildingCreateRequest(name="A座"))
    building_b = location_service.create_building(admin, park.id, BuildingCreateRequest(name="B座"))
    building_c = location_service.create_building(admin, tower.id, BuildingCreateRequest(name="C座"))

    customer = user_service.create_user(
        "customer-1", full_name="张三", phone_number="13800000001", delivery_location_id=park.id
    )
    other_customer = user_service.create_user(
        "customer-2", full_name="李四", phone_number="13800000002", delivery_location_id=park.id
    )
    incomplete_customer = user_service.create_user("customer-3", full_name="王五", phone_number="   ")

    restaurant_x = restaurant_service.create_restaurant(admin, RestaurantCreateRequest(
        name="川味小馆", cuisine="川菜", delivery_fee=Decimal("2.99"),
        delivery_location_id=park.id, owner_id=owner_x.id,
    ))
    restaurant_y = restaurant_service.create_restaurant(admin, RestaurantCreateRequest(
        name="粤式茶餐厅", cuisine="粤菜", delivery_fee=Decimal("3.50"),
        delivery_location_id=park.id, owner_id=owner_y.id,
    ))

    lunchbox_a = lunchbox_service.create_lunchbox(owner_x, restaurant_x.id, LunchboxCreateRequest(
        name="宫保鸡丁饭", description="经典川味", price=Decimal("10.00"),
    ))
    lunchbox_b = lunchbox_service.create_lunchbox(owner_x, restaurant_x.id, LunchboxCreateRequest(
        name="麻婆豆腐饭", description="微辣", price=Decimal("5.50"),
        available_days=[Weekday.MONDAY, Weekday.WEDNESDAY],
        eligible_building_ids=[building_a.id],
    ))
    lunchbox_d = lunchbox_service.create_lunchbox(owner_x, restaurant_x.id, LunchboxCreateRequest(
        name="水煮鱼饭", description="暂停供应", price=Decimal("18.00"), is_available=False,
    ))
    lunchbox_c = lunchbox_service.create_lunchbox(owner_y, restaurant_y.id, LunchboxCreateRequest(
        name="叉烧饭", description="蜜汁叉烧", price=Decimal("8.00"),
    ))

    return SimpleNamespace(
        admin=admin,
        owner_x=owner_x,
        owner_y=owner_y,
        customer=customer,
        other_customer=other_customer,
        incomplete_customer=incomplete_customer,
        park=park,
        tower=tower,
        building_a=building_a,
        building_b=building_b,
        building_c=building_c,
        restaurant_x=restaurant_x,
        restaurant_y=restaurant_y,
        lunchbox_a=lunchbox_a,
        lunchbox_b=lunchbox_b,
        lunchbox_c=lunchbox_c,
        lunchbox_d=lunchbox_d,
    )


@pytest.fixture
def pay(fake_gateway):
    """创建支付意向并模拟客户端确认，返回支付意向ID"""
    def _pay(amount, customer_id=None, confirm=True) -> str:
        result = payment_service.create_payment_intent(amount, customer_id=customer_id)
        if confirm:
            fake_gateway.confirm(result.payment_intent_id)
        return result.payment_intent_id
    return _pay


@pytest.fixture
def order_request(seed, pay):
    """构造已支付的下单请求；默认购物车为 A×2 + B×1，周一送到A座"""
    def _build(customer=None, items=None, restaurant_id=None, building_id=None,
               day="monday", confirm=True, **kwargs) -> OrderCreateRequest:
        customer = customer or seed.customer
        if items is None:
            items = [
                CartItemRequest(lunchbox_id=seed.lunchbox_a.id, quantity=2),
                CartItemRequest(lunchbox_id=seed.lunchbox_b.id, quantity=1),
            ]
        lines = cart_service.build_cart_lines(items)
        totals = compute_totals(lines, lines[0].restaurant_delivery_fee)
        fields = dict(
            restaurant_id=restaurant_id or lines[0].restaurant_id,
            items=items,
            delivery_building_id=building_id or seed.building_a.id,
            delivery_day=day,
            payment_intent_id=pay(totals.total, customer.id, confirm=confirm),
        )
        fields.update(kwargs)
        return OrderCreateRequest(**fields)
    return _build


@pytest.fixture
def place_order(seed, order_request):
    """下单并返回订单"""
    def _place(customer=None, **kwargs):
        customer = customer or seed.customer
        return order_service.create_order(customer, order_request(customer=customer, **kwargs))
    return _place


@pytest.fixture
def auth_headers():
    """为用户生成认证头"""
    def _headers(user, cart_session=None):
        headers = {"Authorization": f"Bearer {create_access_token(user.external_id)}"}
        if cart_session:
            headers["X-Cart-Session"] = cart_session
        return headers
    return _headers


@pytest.fixture
def client(test_db):
    """测试客户端"""
    return TestClient(create_app())
