"""
Lead model: a prospective customer, converted to an Account once qualified.
"""
import uuid

from sqlalchemy import Column, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func

from kamcrm.database import Base


class Lead(Base):
    __tablename__ = 'lead'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_name = Column(Text, nullable=False)
    person_name = Column(Text, default='')
    email = Column(Text, default='')
    phone = Column(Text, default='')
    linkedin_profile_url = Column(Text, default='')
    country = Column(Text, default='')
    website = Column(Text, default='')
    industry = Column(Text, default='')
    job_title = Column(Text, default='')
    status = Column(Text, nullable=False, default='New')
    owner_id = Column(Text, ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    archived_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'companyName': self.company_name,
            'personName': self.person_name,
            'email': self.email,
            'phone': self.phone,
            'linkedinProfileUrl': self.linkedin_profile_url,
            'country': self.country,
            'website': self.website,
            'industry': self.industry,
            'jobTitle': self.job_title,
            'status': self.status,
            'ownerId': self.owner_id,
            'isArchived': bool(self.is_archived),
        }
