import logging
import secrets

from errors import AmberError, LoginError, NoActiveSite, NoSitesFound
from models import Site
from storage import Session, SessionStore

log = logging.getLogger(__name__)


def is_authenticated(store: SessionStore) -> bool:
    return bool(store.get_auth_token())


def login(store: SessionStore, client, api_key: str) -> Site:
    """
    Store the key, discover the account's active site and mark the session
    authenticated. The token is only written once a usable site is known, so
    a failed login leaves the session logged out (the key is kept so the form
    can be prefilled).
    """
    api_key = (api_key or "").strip()
    if not api_key:
        raise LoginError("API key is required")

    store.save(Session(api_key=api_key))

    try:
        sites = client.get_sites()
    except AmberError:
        log.warning("site lookup failed during login")
        raise

    if not sites:
        raise NoSitesFound()
    active = next((s for s in sites if s.status == "active"), None)
    if active is None:
        raise NoActiveSite()

    store.set_site_id(active.id)
    store.set_auth_token(secrets.token_urlsafe(24))
    log.info("logged in, active site %s", active.id)
    return active


def logout(store: SessionStore) -> None:
    store.clear()
