from .base import Base, Column, String, DateTime, Text


class StorageBlob(Base):
    __tablename__ = 'storage_blobs'
    name = Column(String(255), primary_key=True)
    content = Column(Text)
    updated_at = Column(DateTime)
