from __future__ import annotations

import logging

from ..cascade import CascadeDeletionCoordinator, CascadeState
from ..errors import ConflictError, DuplicateKeyError, NotFoundError
from ..models import UserEntity
from ..repositories import Store
from ..schemas import UserCreate, UserUpdate

logger = logging.getLogger(__name__)


def _conflict(exc: DuplicateKeyError) -> ConflictError:
    return ConflictError(f"{exc.field.capitalize()} already exists")


class UserService:
    """Account registration, profile edits and account deletion."""

    def __init__(self, store: Store) -> None:
        self._store = store

    def register_user(self, data: UserCreate) -> UserEntity:
        try:
            user = self._store.users.create(username=data.username, email=data.email)
        except DuplicateKeyError as exc:
            raise _conflict(exc) from exc
        logger.info("Registered user %s", user["id"])
        return user

    def get_profile(self, user_id: str) -> UserEntity:
        user = self._store.users.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def update_profile(self, actor: UserEntity, data: UserUpdate) -> UserEntity:
        fields = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        try:
            updated = self._store.users.update(actor["id"], fields)
        except DuplicateKeyError as exc:
            raise _conflict(exc) from exc
        if updated is None:
            raise NotFoundError("User not found")
        return updated

    # PUBLIC_INTERFACE
    def delete_account(self, actor: UserEntity) -> CascadeState:
        """Delete the actor's account and everything that depends on it."""
        return CascadeDeletionCoordinator(self._store).delete_user(actor["id"])
