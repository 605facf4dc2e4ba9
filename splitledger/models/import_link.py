from sqlalchemy import Column, ForeignKey, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from splitledger.db.session import Base


class ImportLink(Base):
    """Maps an identity from an external service onto a local row."""

    __tablename__ = "import_links"
    __table_args__ = (
        UniqueConstraint("provider", "entity", "external_id", name="uq_import_link_external"),
    )

    id = Column(Integer, primary_key=True)
    provider = Column(String, nullable=False)
    entity = Column(String, nullable=False)
    external_id = Column(String, nullable=False)
    local_id = Column(Integer, nullable=False)
    imported_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
