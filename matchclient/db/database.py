"""Generate database sessions for the credential store"""

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from matchclient.db.schema import Base


def make_session_factory(database_url: str) -> sessionmaker[Session]:
    """Engine + session factory for the given URL. Tables are created if missing."""
    engine = create_engine(database_url)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine)
