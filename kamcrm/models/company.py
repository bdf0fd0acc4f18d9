"""
The seller's own company profile (single row) and the services it offers.

website_summary is a cached crawl of the company website, refreshed by
services.context.refresh_company_summary once it is older than
COMPANY_SUMMARY_REFRESH_HOURS.
"""
import uuid

from sqlalchemy import Column, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from kamcrm.database import Base


class Company(Base):
    __tablename__ = 'company'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    website = Column(Text, default='')
    industry = Column(Text, default='')
    description = Column(Text, default='')
    website_summary = Column(Text, nullable=True)
    website_summary_refreshed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    services = relationship('CompanyService', back_populates='company', cascade='all, delete-orphan')

    def to_context(self):
        return {
            'name': self.name,
            'website': self.website or '',
            'industry': self.industry or '',
            'description': self.description or '',
            'services': [s.name for s in self.services],
        }


class CompanyService(Base):
    __tablename__ = 'company_service'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(Text, ForeignKey('company.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, default='')

    company = relationship('Company', back_populates='services')
