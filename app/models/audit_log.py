"""
Audit log model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from app.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    action = Column(String, nullable=False)  # e.g. "ROLE_ASSIGN", "LEAVE_APPROVE"
    entity_type = Column(String, nullable=False)  # e.g. "role_assignments", "leave_requests"
    entity_id = Column(Integer, nullable=True)  # no FK: withdrawn/deleted rows keep their trail
    meta_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
