"""
Module: work_kernel.models.reference
Responsibility: ORM persistence for the reference records a work points at:
    domains, locations and shop-groups.  They exist so every id carried by a
    command can be resolved (or reported as missing) before anything is
    written.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain DTOs.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - Names are unique per record kind (uq_*_name constraints).
"""

from sqlalchemy import JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from work_kernel.db.base import TrackedBase
from work_kernel.domain.dtos import DomainInfo, LocationInfo, ShopGroupInfo


class DomainModel(TrackedBase):
    """
    An operational domain (e.g. a facility or accelerator section).

    ``workflow_ids`` lists the workflow implementations the domain's
    work-types may be bound to.
    """

    __tablename__ = "domains"

    __table_args__ = (UniqueConstraint("name", name="uq_domain_name"),)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    workflow_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<Domain {self.name}>"

    def to_dto(self) -> DomainInfo:
        return DomainInfo(
            id=self.id,
            name=self.name,
            description=self.description,
            workflow_ids=tuple(self.workflow_ids or ()),
        )


class LocationModel(TrackedBase):
    """A physical location a work is carried out at."""

    __tablename__ = "locations"

    __table_args__ = (UniqueConstraint("name", name="uq_location_name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Location {self.name}>"

    def to_dto(self) -> LocationInfo:
        return LocationInfo(id=self.id, name=self.name, description=self.description)


class ShopGroupModel(TrackedBase):
    """A group of users with operational responsibility over works."""

    __tablename__ = "shop_groups"

    __table_args__ = (UniqueConstraint("name", name="uq_shop_group_name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Principal names (e-mail addresses) of the members
    user_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<ShopGroup {self.name}>"

    def to_dto(self) -> ShopGroupInfo:
        return ShopGroupInfo(
            id=self.id,
            name=self.name,
            description=self.description,
            user_ids=tuple(self.user_ids or ()),
        )
