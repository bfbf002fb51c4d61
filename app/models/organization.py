import enum

from sqlalchemy import Column, String, ForeignKey, Uuid, UniqueConstraint
from .base import BaseModel


class MembershipRole(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class Organization(BaseModel):
    __tablename__ = "organizations"

    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)


class OrgMembership(BaseModel):
    __tablename__ = "org_memberships"
    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_org_memberships_org_user"),
    )

    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), default=MembershipRole.MEMBER.value, nullable=False)  # owner, admin, member

    @property
    def can_manage_documents(self) -> bool:
        return self.role in (MembershipRole.OWNER.value, MembershipRole.ADMIN.value)
