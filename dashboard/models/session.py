"""Server-side session records, keyed by the opaque token held in the cookie."""
from sqlalchemy import Column, String, Integer, DateTime, JSON
from dashboard.database import Base


class SessionRecord(Base):
    __tablename__ = "sessions"

    sid = Column(String, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)  # lets deactivation drop a user's sessions
    payload = Column(JSON, nullable=False)  # {"userId", "username", "role"}
    expires_at = Column(DateTime, nullable=False, index=True)
