from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.factory import AttendanceStrategyFactory
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.mysql_device_registry import MySQLDeviceRegistry
from .attendance.service import AttendanceLedger
from .common.media import LocalMediaStorage
from .core.constants import DEFAULT_MAX_PHOTO_BYTES, DEFAULT_TOKEN_MAX_AGE
from .database.connection import DBConfig, DatabaseConnection
from .policies.mysql_policy_repository import MySQLWindowPolicyRepository
from .policies.service import WindowPolicyService
from .requests.mysql_request_repository import MySQLExceptionRequestRepository
from .requests.service import ExceptionRequestWorkflow
from .users.mysql_tenant_repository import MySQLTenantRepository
from .users.mysql_user_repository import MySQLUserRepository
from .users.service import AuthService


@dataclass(frozen=True)
class Container:
    """Composition root handed to every controller's ``register``.

    ``conn`` is None when a container is assembled from in-memory repositories.
    """

    auth_service: AuthService
    policy_service: WindowPolicyService
    attendance_ledger: AttendanceLedger
    request_workflow: ExceptionRequestWorkflow
    conn: Optional[DatabaseConnection] = None


def build_container(
    *,
    db_config: dict,
    secret_key: str,
    upload_folder: str,
    max_photo_bytes: int = DEFAULT_MAX_PHOTO_BYTES,
    token_max_age: int = DEFAULT_TOKEN_MAX_AGE,
    connect_timeout: int = 10,
    statement_timeout_ms: int = 5000,
    lock_wait_timeout: int = 5,
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
        connect_timeout=int(connect_timeout),
        statement_timeout_ms=int(statement_timeout_ms),
        lock_wait_timeout=int(lock_wait_timeout),
    )
    conn = DatabaseConnection.get_instance(config)

    users_repo = MySQLUserRepository(conn)
    tenants_repo = MySQLTenantRepository(conn)
    policies_repo = MySQLWindowPolicyRepository(conn)
    events_repo = MySQLAttendanceRepository(conn)
    devices_repo = MySQLDeviceRegistry(conn)
    requests_repo = MySQLExceptionRequestRepository(conn)

    auth_service = AuthService(users_repo, tenants_repo, secret_key=secret_key, token_max_age=token_max_age)
    policy_service = WindowPolicyService(policies_repo, tenants_repo, transaction=conn.transaction)
    attendance_ledger = AttendanceLedger(
        events_repo,
        users_repo,
        policy_service,
        devices_repo,
        transaction=conn.transaction,
        media=LocalMediaStorage(upload_folder, max_bytes=max_photo_bytes),
        strategy_factory=AttendanceStrategyFactory(),
    )
    request_workflow = ExceptionRequestWorkflow(
        requests_repo,
        users_repo,
        attendance_ledger,
        transaction=conn.transaction,
    )

    return Container(
        auth_service=auth_service,
        policy_service=policy_service,
        attendance_ledger=attendance_ledger,
        request_workflow=request_workflow,
        conn=conn,
    )
