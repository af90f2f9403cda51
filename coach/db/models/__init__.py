"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.
"""
from coach.db.models.interview_session import InterviewSessionDocument

__all__ = [
    "InterviewSessionDocument",
]
