"""
业务审计日志
写入 logs 表；在事务内调用时传入事务连接，保证与业务数据同时提交或回滚
"""

import json
from typing import Any, Dict, Optional

import duckdb


def _default(value):
    # Decimal、日期等统一转字符串
    return str(value)


def write_audit_log(
    conn: duckdb.DuckDBPyConnection,
    action: str,
    detail: Dict[str, Any],
    user_id: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> None:
    conn.execute(
        "INSERT INTO logs(user_id, actor_id, action, detail_json) VALUES (?,?,?,?)",
        [user_id, actor_id, action, json.dumps(detail, ensure_ascii=False, default=_default)],
    )
