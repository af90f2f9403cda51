"""
Interview session documents, one per (user, session id).

Each row is a schemaless document: the full session object lives in the
JSON column and only the ownership key and creation time are broken out
for lookups and ordering.
"""
from sqlalchemy import Column, String, DateTime, JSON, Index
from sqlalchemy.sql import func
from coach.db.base import Base


class InterviewSessionDocument(Base):
    __tablename__ = "interview_sessions"

    user_id = Column(String, primary_key=True)
    id = Column(String, primary_key=True)

    document = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<InterviewSessionDocument(user_id='{self.user_id}', id='{self.id}')>"
