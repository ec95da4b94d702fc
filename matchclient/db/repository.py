"""Protocol repository for persisted credentials (SQLAlchemy implementation in sql_repository.py)"""

from typing import Protocol


class TokenRepository(Protocol):
    """Persistence layer orchestration"""

    def get_token(self, key: str) -> str | None:
        """Stored token under this key, if any."""
        ...

    def set_token(self, key: str, token: str) -> None:
        """Create or overwrite the token stored under this key."""
        ...

    def delete_token(self, key: str) -> None:
        """Remove the token stored under this key (no-op when absent)."""
        ...
