from typing import Any, Dict

from sqlalchemy.orm import Session
from kiosk.data.models.user import UserModel

class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> UserModel | None:
        return self.db.get(UserModel, user_id)

    def create_user(self, user: UserModel) -> UserModel:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def ensure_user(self, user_id: int, name: str) -> UserModel:
        # no commit: joins the caller's transaction (checkout)
        user = self.get_user(user_id)
        if user is None:
            user = UserModel(id=user_id, name=name, history=[])
            self.db.add(user)
            self.db.flush()
        return user

    def append_history(self, user_id: int, entry: Dict[str, Any]) -> bool:
        user = self.get_user(user_id)
        if user is None:
            return False
        # JSON column: assign a new list so the change is tracked
        user.history = [*(user.history or []), entry]
        return True
