"""
CRM user: owner of leads and accounts, author of activity updates.
"""
import uuid

from sqlalchemy import Column, Text, DateTime
from sqlalchemy.sql import func

from kamcrm.database import Base


# Context used when a record has no owner and no admin exists yet
DEFAULT_USER_CONTEXT = {
    'name': 'Admin User',
    'email': 'admin@example.com',
    'role': 'admin',
}


class User(Base):
    __tablename__ = 'users'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True)
    role = Column(Text, nullable=False, default='user')  # admin | user
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_context(self):
        return {'name': self.name, 'email': self.email, 'role': self.role}
