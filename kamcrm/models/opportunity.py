"""
Opportunity model: a deal in progress against an account.
"""
import uuid

from sqlalchemy import Column, Text, Float, Boolean, Date, DateTime, ForeignKey
from sqlalchemy.sql import func

from kamcrm.database import Base


class Opportunity(Base):
    __tablename__ = 'opportunity'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    account_id = Column(Text, ForeignKey('account.id', ondelete='CASCADE'), nullable=False, index=True)
    status = Column(Text, nullable=False, default='Need Analysis')
    value = Column(Float, default=0.0)
    description = Column(Text, default='')
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    archived_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def timeline(self):
        start = self.start_date.isoformat() if self.start_date else 'N/A'
        end = self.end_date.isoformat() if self.end_date else 'N/A'
        return f"{start} to {end}"
