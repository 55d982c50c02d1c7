"""Organization membership model."""
from sqlalchemy import Column, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from impactos.models.base import BaseModel
from impactos.models.enums import MemberRole


class OrganizationMember(BaseModel):
    """Grants one user one role inside one organization.

    The (user_id, organization_id) uniqueness constraint is what serializes
    concurrent joins: the losing insert gets an IntegrityError.
    """

    __tablename__ = "organization_members"

    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(
        SQLEnum(
            MemberRole,
            name="member_role",
            native_enum=False,
            length=20,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=MemberRole.VIEWER,
    )

    user = relationship("User", back_populates="memberships")
    organization = relationship("Organization", back_populates="members")

    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_organization_members_user_org"),
    )

    def __repr__(self) -> str:
        return (
            f"<OrganizationMember(user_id={self.user_id}, "
            f"organization_id={self.organization_id}, role={self.role})>"
        )
