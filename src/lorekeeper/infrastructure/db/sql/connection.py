import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker


DATABASE_URL = os.getenv("LOREKEEPER_DATABASE_URL", "sqlite:///lorekeeper.db")

engine = create_engine(DATABASE_URL, echo=False, future=True, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, future=True, expire_on_commit=False)


_SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS narrative_state (
        player_id VARCHAR(120) NOT NULL,
        state_key VARCHAR(60) NOT NULL,
        payload TEXT NOT NULL,
        version INTEGER NOT NULL,
        PRIMARY KEY (player_id, state_key)
    )
    """,
)


def ensure_schema(bind: Engine | None = None) -> None:
    with (bind or engine).begin() as conn:
        for statement in _SCHEMA_STATEMENTS:
            conn.exec_driver_sql(statement)
