from __future__ import annotations

import logging
from typing import Optional

from buildledger.errors import UnauthenticatedError

logger = logging.getLogger(__name__)


class SessionService:
    """Who is using the app. Authentication itself happens elsewhere."""

    def __init__(self, user_id: Optional[str] = None) -> None:
        self._user_id = user_id or None

    def sign_in(self, user_id: str) -> None:
        if not user_id:
            raise UnauthenticatedError("empty user id")
        self._user_id = user_id
        logger.info("User %s signed in", user_id)

    def sign_out(self) -> None:
        if self._user_id:
            logger.info("User %s signed out", self._user_id)
        self._user_id = None

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def get_current_user_id(self) -> str:
        if self._user_id is None:
            raise UnauthenticatedError()
        return self._user_id
