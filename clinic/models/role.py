from sqlalchemy import Column, Integer, BigInteger, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Role(Base):
    __tablename__ = "roles"

    role_id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(String(255), nullable=True)
    is_active = Column(Integer, default=1)

    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    permissions = relationship(
        "RolePermission", back_populates="role", cascade="all, delete-orphan"
    )
    users = relationship("User", back_populates="role")

    def __repr__(self):
        return f"<Role(id={self.role_id}, name='{self.name}')>"

class RolePermission(Base):
    __tablename__ = "role_permissions"

    permission_id = Column(BigInteger, primary_key=True, autoincrement=False)
    role_id = Column(Integer, ForeignKey("roles.role_id"), nullable=False, index=True)

    # Raw grant as stored; mapped through the ability lexicon when read
    subject = Column(String(50), nullable=False)
    action = Column(String(20), nullable=False)
    field_name = Column(String(255), nullable=True)
    can_access = Column(Integer, default=1)

    role = relationship("Role", back_populates="permissions")

    def as_row(self) -> dict:
        return {
            "SUBJECT": self.subject,
            "ACTION": self.action,
            "FIELD_NAME": self.field_name,
            "CAN_ACCESS": self.can_access,
        }

    def __repr__(self):
        return f"<RolePermission(role_id={self.role_id}, {self.action} {self.subject})>"
