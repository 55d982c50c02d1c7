"""Per-organization configuration."""
from sqlalchemy import JSON, Boolean, Column, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from impactos.models.base import BaseModel

# Values provisioned for every new organization.
DEFAULT_FEATURE_FLAGS: dict[str, bool] = {
    "feature_company_updates": True,
    "feature_interactions": True,
    "feature_advisor_profiles": True,
    "feature_fireflies": False,
    "feature_commitment_tracking": False,
    "feature_ai_integration": False,
}


class TenantConfig(BaseModel):
    """Feature flags and the AI sub-feature map of one organization."""

    __tablename__ = "tenant_config"

    organization_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    feature_company_updates = Column(Boolean, nullable=False, default=True)
    feature_interactions = Column(Boolean, nullable=False, default=True)
    feature_advisor_profiles = Column(Boolean, nullable=False, default=True)
    feature_fireflies = Column(Boolean, nullable=False, default=False)
    feature_commitment_tracking = Column(Boolean, nullable=False, default=False)
    feature_ai_integration = Column(Boolean, nullable=False, default=False)
    ai_features = Column(JSON, nullable=False, default=dict)

    organization = relationship("Organization", back_populates="config")

    def __repr__(self) -> str:
        return f"<TenantConfig(organization_id={self.organization_id})>"
