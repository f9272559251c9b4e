"""Generate database engine / sessions"""

from sqlalchemy import Engine, StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from chesslink.db.schema import Base


def make_engine(database_url: str, echo: bool = False) -> Engine:
    """Engine with the tables in place. In-memory SQLite needs a single shared connection."""
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_url, echo=echo)

    # Ensure all tables are created
    Base.metadata.create_all(bind=engine)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autoflush=False, bind=engine)
