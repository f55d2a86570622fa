from sqlalchemy import Column, String, Integer, Text, Date
from src.database import Base
from src.shared.models import AuditMixin, OwnedMixin, JSONType


class Case(Base, AuditMixin, OwnedMixin):
    """The family-law matter a user is documenting. Feeds prompt context only."""
    __tablename__ = "cases"

    title = Column(String, nullable=True)
    case_number = Column(String, nullable=True)
    jurisdiction_state = Column(String, nullable=True)
    jurisdiction_county = Column(String, nullable=True)
    court_name = Column(String, nullable=True)
    case_type = Column(String, nullable=True)
    stage = Column(String, nullable=True)
    your_role = Column(String, nullable=True)
    opposing_party_name = Column(String, nullable=True)
    opposing_party_role = Column(String, nullable=True)
    children_count = Column(Integer, nullable=True)
    children_summary = Column(Text, nullable=True)
    parenting_schedule = Column(Text, nullable=True)
    goals_summary = Column(Text, nullable=True)
    risk_flags = Column(JSONType, nullable=True)  # list[str]
    next_court_date = Column(Date, nullable=True)
