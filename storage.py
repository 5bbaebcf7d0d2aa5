"""Credential storage: the API key, the active site id and the auth token.

The three slots are independent; ``clear`` always drops them together.
"""

from dataclasses import dataclass, replace
from typing import Optional

from models import db, UserConfig


@dataclass(frozen=True)
class Session:
    api_key: Optional[str] = None
    site_id: Optional[str] = None
    auth_token: Optional[str] = None


class SessionStore:
    """Interface over wherever the session slots live."""

    def load(self) -> Session:
        raise NotImplementedError

    def save(self, session: Session) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        self.save(Session())

    def get_api_key(self) -> Optional[str]:
        return self.load().api_key

    def get_site_id(self) -> Optional[str]:
        return self.load().site_id

    def get_auth_token(self) -> Optional[str]:
        return self.load().auth_token

    def set_api_key(self, api_key: Optional[str]) -> None:
        self.save(replace(self.load(), api_key=api_key))

    def set_site_id(self, site_id: Optional[str]) -> None:
        self.save(replace(self.load(), site_id=site_id))

    def set_auth_token(self, auth_token: Optional[str]) -> None:
        self.save(replace(self.load(), auth_token=auth_token))


class MemorySessionStore(SessionStore):
    def __init__(self, session: Optional[Session] = None):
        self._session = session or Session()

    def load(self) -> Session:
        return self._session

    def save(self, session: Session) -> None:
        self._session = session


class SqlSessionStore(SessionStore):
    """Keeps the slots on the singleton ``UserConfig`` row.

    Calls come from request threads, scheduler threads and the fetch pool,
    so every operation pushes its own application context.
    """

    def __init__(self, app):
        self.app = app

    def _row(self) -> UserConfig:
        user = db.session.get(UserConfig, 1)
        if user is None:
            user = UserConfig(id=1)
            db.session.add(user)
        return user

    def load(self) -> Session:
        with self.app.app_context():
            user = db.session.get(UserConfig, 1)
            if user is None:
                return Session()
            return Session(
                api_key=user.api_key,
                site_id=user.site_id,
                auth_token=user.auth_token,
            )

    def save(self, session: Session) -> None:
        with self.app.app_context():
            user = self._row()
            user.api_key = session.api_key
            user.site_id = session.site_id
            user.auth_token = session.auth_token
            db.session.commit()
