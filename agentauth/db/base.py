"""
Declarative base for all ORM models.

Models register themselves on ``Base.metadata`` when ``agentauth.models`` is
imported; import that package before calling ``create_all``.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
