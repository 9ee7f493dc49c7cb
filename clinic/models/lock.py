from sqlalchemy import Column, Integer, String

from ..core.database import Base


class NamedLock(Base):
    """A row whose update serializes one kind of write across workers."""
    __tablename__ = "named_locks"

    name = Column(String(50), primary_key=True)
    version = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<NamedLock(name='{self.name}', version={self.version})>"
