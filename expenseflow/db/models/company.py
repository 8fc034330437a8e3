import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.orm import relationship

from expenseflow.db.base import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    default_currency = Column(String(3), nullable=False, default="USD")
    country = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    users = relationship("User", back_populates="company")
    workflows = relationship("ApprovalWorkflow", back_populates="company")
    expense_claims = relationship("ExpenseClaim", back_populates="company")
