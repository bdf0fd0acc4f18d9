"""
AI analysis records: append-only history of enrichment results per entity.

The current result for (entity_type, entity_id, analysis_type) is the
success row with the latest last_refreshed_at. Error rows are kept for
diagnostics and never read by the freshness gate.
"""
import uuid

from sqlalchemy import Column, Text, Float, DateTime, JSON, Index
from sqlalchemy.sql import func

from kamcrm.database import Base


class AnalysisRecord(Base):
    __tablename__ = 'ai_analysis'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    entity_type = Column(Text, nullable=False)           # Lead | Account
    entity_id = Column(Text, nullable=False)
    analysis_type = Column(Text, nullable=False, default='enrichment')
    status = Column(Text, nullable=False)                # success | error
    raw_output = Column(JSON, nullable=True)
    score = Column(Float, nullable=True)
    recommendations = Column(JSON, nullable=True)
    pitch_notes = Column(Text, nullable=True)
    use_case = Column(Text, nullable=True)
    email_template = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    last_refreshed_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('ix_ai_analysis_entity', 'entity_type', 'entity_id', 'analysis_type', 'status'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'entityType': self.entity_type,
            'entityId': self.entity_id,
            'analysisType': self.analysis_type,
            'status': self.status,
            'score': self.score,
            'recommendations': self.recommendations or [],
            'pitchNotes': self.pitch_notes or '',
            'useCase': self.use_case or '',
            'emailTemplate': self.email_template or '',
            'aiOutput': self.raw_output,
            'errorMessage': self.error_message,
            'lastRefreshedAt': self.last_refreshed_at.isoformat() if self.last_refreshed_at else None,
        }
