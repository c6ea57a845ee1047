# alapio/models/user.py

from sqlalchemy import Column, String, DateTime
from alapio.models.base import Base, utcnow


class User(Base):
    __tablename__ = "users"

    # Issued by the external auth provider (or the direct-login fallback)
    id = Column(String(255), primary_key=True)
    username = Column(String(255), unique=True, nullable=False, index=True)
    avatar = Column(String(2048), nullable=True)
    last_seen = Column(DateTime, default=utcnow, nullable=True)

    def __repr__(self):
        return f"<User id={self.id!r} username={self.username!r}>"
