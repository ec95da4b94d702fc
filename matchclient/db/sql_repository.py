"""Implementation of (Token)Repository using SQLAlchemy"""

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from matchclient.core.exceptions import RepositoryError
from matchclient.db.schema import DBCredential


class SQLTokenRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_token(self, key: str) -> str | None:
        credential = self._fetch(key)
        return credential.token if credential else None

    def set_token(self, key: str, token: str) -> None:
        credential = self._fetch(key)
        if credential is None:
            self.db.add(DBCredential(key=key, token=token))
        else:
            credential.token = token
        self._commit()

    def delete_token(self, key: str) -> None:
        credential = self._fetch(key)
        if credential is None:
            return
        self.db.delete(credential)
        self._commit()

    def _fetch(self, key: str) -> DBCredential | None:
        query = select(DBCredential).where(DBCredential.key == key)
        return self.db.scalar(query)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(f"Could not persist credential: {exc}") from exc
