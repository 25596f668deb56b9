from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from functools import wraps
import logging

from config import get_settings

logger = logging.getLogger(__name__)


settings = get_settings()

# SQLite 需要特殊設定：connect_args={"check_same_thread": False}
# 這允許多執行緒存取同一個 SQLite 連線（FastAPI 的多執行緒環境需要）
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)


def use_immediate_transactions(engine):
    """
    SQLite：每個 transaction 都用 BEGIN IMMEDIATE 開始

    SQLite 會忽略 SELECT ... FOR UPDATE，而 pysqlite 預設要等到第一個寫入才開
    transaction，鎖內讀到的狀態可能已經過期。改成 BEGIN IMMEDIATE 後，
    transaction 的第一個 statement（with_raffle_lock）就會取得寫入鎖，
    其他 writer 必須等待（超過 timeout 則拋出 OperationalError）

    做法參考 SQLAlchemy 文件的 pysqlite serializable isolation 範例
    """
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # 關閉 pysqlite 自己的 BEGIN，交給下面的 begin 事件
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


if settings.database_url.startswith("sqlite"):
    use_immediate_transactions(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _find_session(args, kwargs):
    for arg in args:
        if isinstance(arg, Session):
            return arg
    return kwargs.get('db')


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def enter(self, db: Session, ...):
            # 所有 DB 操作都在一個 transaction 內
            db.add(entry)
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback（被拒絕的呼叫不會留下任何部分修改）
        - 異常會被重新拋出（讓上層處理）

    注意：
        - 參數中必須有一個 db: Session（位置參數或 keyword）
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = _find_session(args, kwargs)

        if db is None:
            raise ValueError(
                f"@transactional requires a 'db: Session' argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except Exception as e:
            logger.warning(f"Transaction rolled back in {func.__name__}: {e!r}")
            db.rollback()
            raise

    return wrapper
