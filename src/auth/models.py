from sqlalchemy import Column, String, Boolean
from src.database import Base
from src.shared.models import AuditMixin


class User(Base, AuditMixin):
    """Mirror of the identity provider's user; the core never authenticates."""
    __tablename__ = "users"

    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    timezone = Column(String, nullable=True)  # IANA name, e.g. "America/Chicago"
    is_active = Column(Boolean, default=True, nullable=False)
