"""
One mutable row per named batch job, used as an advisory run flag.

Check-then-set is not atomic: two triggers landing together can both see
a non-running row and proceed.
"""
from sqlalchemy import Column, Text, Integer, DateTime

from kamcrm.database import Base


class JobStatus(Base):
    __tablename__ = 'enrichment_jobs'

    job_name = Column(Text, primary_key=True)
    status = Column(Text, nullable=False, default='completed')  # running | completed | error
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    processed_count = Column(Integer, default=0)
    error_count = Column(Integer, default=0)
    error_message = Column(Text, nullable=True)

    def to_dict(self):
        return {
            'job_name': self.job_name,
            'status': self.status,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'processed_count': self.processed_count or 0,
            'error_count': self.error_count or 0,
            'error_message': self.error_message,
        }
