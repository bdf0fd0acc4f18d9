"""
Account model: an active customer or channel partner.
"""
import uuid

from sqlalchemy import Column, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func

from kamcrm.database import Base


class Account(Base):
    __tablename__ = 'account'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    type = Column(Text, nullable=False, default='Client')  # Client | Channel Partner
    status = Column(Text, nullable=False, default='Active')
    description = Column(Text, default='')
    contact_email = Column(Text, default='')
    contact_person_name = Column(Text, default='')
    contact_phone = Column(Text, default='')
    industry = Column(Text, default='')
    website = Column(Text, default='')
    country = Column(Text, default='')
    owner_id = Column(Text, ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    converted_from_lead_id = Column(Text, ForeignKey('lead.id', ondelete='SET NULL'), nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    archived_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'status': self.status,
            'description': self.description,
            'contactEmail': self.contact_email,
            'contactPersonName': self.contact_person_name,
            'contactPhone': self.contact_phone,
            'industry': self.industry,
            'website': self.website,
            'country': self.country,
            'ownerId': self.owner_id,
            'convertedFromLeadId': self.converted_from_lead_id,
            'isArchived': bool(self.is_archived),
        }
