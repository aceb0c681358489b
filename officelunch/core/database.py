"""
数据库连接和管理模块
负责 DuckDB 数据库的初始化、连接管理和表结构定义

数据库表说明：
- users: 账户、角色与个人资料
- delivery_locations / delivery_buildings: 配送地点及其下属楼宇
- restaurants: 餐厅及配送费
- lunchboxes: 餐厅的午餐盒（菜单项）
- orders / order_items: 订单及订单明细（金额均为下单时快照）
- logs: 业务操作审计日志

所有对外的数据库调用在构造时统一包装重试逻辑（见 core/retry.py）。
"""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional

import duckdb

from ..config.settings import settings
from .logging import logger
from .retry import with_retry

# 完整的表结构定义
# 主键与订单号均由序列生成，保证并发下单时单调且不冲突
SCHEMA_SQL = r"""
CREATE SEQUENCE IF NOT EXISTS users_id_seq;
CREATE TABLE IF NOT EXISTS users (
  id INTEGER DEFAULT nextval('users_id_seq') PRIMARY KEY,
  external_id TEXT UNIQUE NOT NULL,  -- 认证方提供的主体标识
  username TEXT,
  email TEXT,
  role TEXT CHECK(role IN ('customer','restaurant_owner','admin')) DEFAULT 'customer' NOT NULL,
  role_selected BOOLEAN DEFAULT FALSE,
  full_name TEXT,
  phone_number TEXT,
  delivery_location_id INTEGER,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS delivery_locations_id_seq;
CREATE TABLE IF NOT EXISTS delivery_locations (
  id INTEGER DEFAULT nextval('delivery_locations_id_seq') PRIMARY KEY,
  name TEXT NOT NULL,
  address TEXT NOT NULL,
  is_active BOOLEAN DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS delivery_buildings_id_seq;
CREATE TABLE IF NOT EXISTS delivery_buildings (
  id INTEGER DEFAULT nextval('delivery_buildings_id_seq') PRIMARY KEY,
  name TEXT NOT NULL,
  delivery_location_id INTEGER NOT NULL,
  is_active BOOLEAN DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_buildings_location ON delivery_buildings(delivery_location_id);

CREATE SEQUENCE IF NOT EXISTS restaurants_id_seq;
CREATE TABLE IF NOT EXISTS restaurants (
  id INTEGER DEFAULT nextval('restaurants_id_seq') PRIMARY KEY,
  name TEXT NOT NULL,
  description TEXT,
  cuisine TEXT NOT NULL,
  image_url TEXT,
  rating DOUBLE DEFAULT 0.0,
  delivery_time TEXT,
  delivery_fee_cents INTEGER NOT NULL,  -- 使用分为单位避免浮点精度问题
  delivery_location_id INTEGER,
  is_active BOOLEAN DEFAULT TRUE,
  owner_id INTEGER,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_restaurants_owner ON restaurants(owner_id);

CREATE SEQUENCE IF NOT EXISTS lunchboxes_id_seq;
CREATE TABLE IF NOT EXISTS lunchboxes (
  id INTEGER DEFAULT nextval('lunchboxes_id_seq') PRIMARY KEY,
  restaurant_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  description TEXT NOT NULL,
  price_cents INTEGER NOT NULL,
  image_url TEXT,
  is_available BOOLEAN DEFAULT TRUE,
  dietary_tags_json TEXT,
  available_days_json TEXT,  -- 可配送的星期
  building_ids_json TEXT,  -- 可配送的楼宇
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_lunchboxes_restaurant ON lunchboxes(restaurant_id);

CREATE SEQUENCE IF NOT EXISTS orders_id_seq;
CREATE SEQUENCE IF NOT EXISTS orders_number_seq START 1001;
CREATE TABLE IF NOT EXISTS orders (
  order_id INTEGER DEFAULT nextval('orders_id_seq') PRIMARY KEY,
  order_number INTEGER DEFAULT nextval('orders_number_seq') UNIQUE NOT NULL,
  customer_id INTEGER NOT NULL,
  restaurant_id INTEGER NOT NULL,
  status TEXT CHECK(status IN ('pending','confirmed','preparing','ready','out_for_delivery','delivered','cancelled')) NOT NULL,
  subtotal_cents INTEGER NOT NULL,
  delivery_fee_cents INTEGER NOT NULL,
  service_fee_cents INTEGER NOT NULL,
  tax_cents INTEGER NOT NULL,
  total_cents INTEGER NOT NULL,
  delivery_location TEXT NOT NULL,  -- 下单时的配送地点名称快照
  delivery_building_id INTEGER NOT NULL,
  delivery_day TEXT NOT NULL,
  payment_intent_id TEXT UNIQUE NOT NULL,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_orders_customer ON orders(customer_id);
CREATE INDEX IF NOT EXISTS idx_orders_restaurant ON orders(restaurant_id);

CREATE SEQUENCE IF NOT EXISTS order_items_id_seq;
CREATE TABLE IF NOT EXISTS order_items (
  id INTEGER DEFAULT nextval('order_items_id_seq') PRIMARY KEY,
  order_id INTEGER NOT NULL,
  lunchbox_id INTEGER NOT NULL,
  name TEXT,
  quantity INTEGER CHECK(quantity > 0) NOT NULL,
  price_cents INTEGER NOT NULL  -- 单价快照，不随菜单变动
);

CREATE INDEX IF NOT EXISTS idx_order_items_order ON order_items(order_id);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  user_id INTEGER,  -- 操作涉及的用户
  actor_id INTEGER,  -- 实际执行操作的用户（如管理员）
  action TEXT,  -- 操作类型标识
  detail_json TEXT,  -- 操作详情的结构化数据
  created_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_logs_user ON logs(user_id);
CREATE INDEX IF NOT EXISTS idx_logs_action ON logs(action);
"""


def _db_path_from_url(db_url: str) -> str:
    """从 database_url 解析 DuckDB 文件路径"""
    if db_url.startswith("duckdb://"):
        return db_url.replace("duckdb://", "", 1)
    return db_url


class DatabaseManager:
    """数据库管理器，封装所有数据库操作"""

    def __init__(
        self,
        db_path: Optional[str] = None,
        retry_attempts: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
    ):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self.db_path = db_path or _db_path_from_url(settings.database_url)
        self.retry_attempts = retry_attempts if retry_attempts is not None else settings.db_retry_attempts
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else settings.db_retry_base_delay
        )
        self._install_retry()

    def _install_retry(self):
        """在构造处统一为所有对外调用包装重试"""
        retry = with_retry(
            attempts=self.retry_attempts,
            base_delay=self.retry_base_delay,
            on_retry=self._reset_connection,
        )
        self.execute_query = retry(self._execute_query)
        self.execute_one = retry(self._execute_one)
        self.fetch_all = retry(self._fetch_all)
        self.fetch_one = retry(self._fetch_one)
        self.run_in_transaction = retry(self._run_in_transaction)

    def configure(
        self,
        db_path: Optional[str] = None,
        retry_attempts: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
    ):
        """切换数据库或重试参数（测试环境使用内存库）"""
        with self._lock:
            self.close()
            if db_path is not None:
                self.db_path = db_path
            if retry_attempts is not None:
                self.retry_attempts = retry_attempts
            if retry_base_delay is not None:
                self.retry_base_delay = retry_base_delay
            self._install_retry()

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """获取数据库连接，首次访问时建立连接并初始化表结构"""
        with self._lock:
            if self._connection is None:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(self.db_path)
                self._connection.execute(SCHEMA_SQL)
            return self._connection

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self.connection

    def init_database(self):
        """初始化数据库"""
        with self._lock:
            self.connection.execute(SCHEMA_SQL)

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def _reset_connection(self, error: BaseException = None):
        """重试前丢弃可能已失效的连接，下次访问时重新建立；内存库重连会丢数据，保留原连接"""
        if self.db_path == ":memory:":
            return
        with self._lock:
            if self._connection is not None:
                try:
                    self._connection.close()
                except duckdb.Error as e:
                    logger.warning("db_connection_close_failed", error=str(e))
                self._connection = None

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """数据库事务上下文管理器，异常时回滚"""
        with self._lock:
            conn = self.connection
            conn.execute("BEGIN TRANSACTION")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def _run_in_transaction(self, work: Callable[[duckdb.DuckDBPyConnection], Any]) -> Any:
        """在单个事务中执行 work(conn)，整体作为重试单元"""
        with self.transaction() as conn:
            return work(conn)

    def _execute_query(self, query: str, params: list = None) -> list:
        """执行查询并返回结果"""
        with self._lock:
            con = self.connection
            if params:
                return con.execute(query, params).fetchall()
            return con.execute(query).fetchall()

    def _execute_one(self, query: str, params: list = None) -> Optional[tuple]:
        """执行查询并返回单条结果"""
        with self._lock:
            con = self.connection
            if params:
                return con.execute(query, params).fetchone()
            return con.execute(query).fetchone()

    def _fetch_all(self, query: str, params: list = None) -> List[Dict[str, Any]]:
        """执行查询并以字典列表返回"""
        with self._lock:
            return rows_as_dicts(self.connection, query, params)

    def _fetch_one(self, query: str, params: list = None) -> Optional[Dict[str, Any]]:
        rows = self._fetch_all(query, params)
        return rows[0] if rows else None


def rows_as_dicts(conn: duckdb.DuckDBPyConnection, query: str, params: list = None) -> List[Dict[str, Any]]:
    """在给定连接上执行查询，按列名组装为字典"""
    cur = conn.execute(query, params) if params else conn.execute(query)
    columns = [d[0] for d in cur.description]
    return [dict(zip(columns, row)) for row in cur.fetchall()]


def row_as_dict(conn: duckdb.DuckDBPyConnection, query: str, params: list = None) -> Optional[Dict[str, Any]]:
    rows = rows_as_dicts(conn, query, params)
    return rows[0] if rows else None


# 全局数据库管理器实例
db_manager = DatabaseManager()
