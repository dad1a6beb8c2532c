# kiosk/services/user_service.py
from sqlalchemy.orm import Session

from kiosk.data.models.user import UserModel
from kiosk.domain.errors import NotFound
from kiosk.domain.schemas import UserCreate, UserRead
from kiosk.repos.user_repo import UserRepo


class UserService:
    def __init__(self, db: Session):
        self.repo = UserRepo(db)

    def create_user(self, payload: UserCreate) -> UserRead:
        # kiosk customers are registered on first use; repeating is harmless
        existing = self.repo.get_user(payload.id)
        if existing:
            return UserRead.model_validate(existing)

        created = self.repo.create_user(UserModel(id=payload.id, name=payload.name, history=[]))
        return UserRead.model_validate(created)

    def get_user(self, user_id: int) -> UserRead:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFound(f"User {user_id} not found")
        return UserRead.model_validate(user)
