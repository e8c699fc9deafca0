from sqlalchemy import TIMESTAMP, Column, Enum, Integer, String

from database import Base, utcnow

ROLES = ("admin", "editor")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(*ROLES, name="user_role"), nullable=False, default="admin")

    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow, nullable=False)
