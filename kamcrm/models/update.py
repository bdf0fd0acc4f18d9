"""
Activity log entry attached to a lead, an opportunity and/or an account.
"""
import uuid

from sqlalchemy import Column, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func

from kamcrm.database import Base


class Update(Base):
    __tablename__ = 'update'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(Text, nullable=False, default='General')  # General | Call | Meeting | Email
    content = Column(Text, nullable=False, default='')
    date = Column(DateTime(timezone=True), server_default=func.now())
    lead_id = Column(Text, ForeignKey('lead.id', ondelete='CASCADE'), nullable=True, index=True)
    opportunity_id = Column(Text, ForeignKey('opportunity.id', ondelete='CASCADE'), nullable=True, index=True)
    account_id = Column(Text, ForeignKey('account.id', ondelete='CASCADE'), nullable=True, index=True)
    updated_by_user_id = Column(Text, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    archived_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
