from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from skillpath.database import Base


def generate_uuid():
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=generate_uuid)
    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    selected_domains = Column(JSON, nullable=True)  # Ordered list of domain names

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    skill_levels = relationship("DomainSkillLevel", back_populates="user")
    quiz_attempts = relationship("QuizAttempt", back_populates="user")
    enrolled_courses = relationship("EnrolledCourse", back_populates="user")


class DomainSkillLevel(Base):
    """One skill determination per quiz submission. Append-only."""
    __tablename__ = "domain_skill_levels"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    domain = Column(String, nullable=False, index=True)
    skill_level = Column(String, nullable=False)  # "Beginner", "Intermediate", "Advanced"
    determined_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="skill_levels")


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    domain = Column(String, nullable=False, index=True)
    questions = Column(JSON, nullable=False)  # Ordered list of question objects
    answers = Column(JSON, nullable=False)  # Selected option indices, null = unanswered
    score = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    skill_level_determined = Column(String, nullable=True)
    completed_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="quiz_attempts")


class EnrolledCourse(Base):
    __tablename__ = "enrolled_courses"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(String, nullable=True)  # Id from the recommendation payload
    course_title = Column(String, nullable=False)
    course_platform = Column(String, nullable=False)
    course_url = Column(String, nullable=False)
    domain = Column(String, nullable=False)
    is_paid = Column(Boolean, default=False)
    progress = Column(Integer, default=0)  # 0-100
    completed = Column(Boolean, default=False)
    enrolled_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="enrolled_courses")


class ChatMessage(Base):
    """Mentor conversation turns"""
    __tablename__ = "chat_messages"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String, nullable=False)  # "user" or "assistant"
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User")


class LearningSchedule(Base):
    __tablename__ = "learning_schedules"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(String, ForeignKey("enrolled_courses.id"), nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(DateTime, nullable=True)
    completed = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User")
    course = relationship("EnrolledCourse")
