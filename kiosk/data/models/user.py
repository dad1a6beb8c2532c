from sqlalchemy import Column, Integer, String, JSON
from kiosk.data.database import Base

class UserModel(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    history = Column(JSON, nullable=False, default=list)
