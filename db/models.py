from sqlalchemy import Column, Integer, String, DateTime, Boolean, false
from sqlalchemy.sql import func
from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Profile fields
    full_name = Column(String(200), nullable=False)
    username = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt hash

    # Email verification, mirrored from the identity provider
    email_verified = Column(Boolean, default=False, server_default=false(), nullable=False)
    remote_provider_id = Column(String(128), unique=True, index=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
