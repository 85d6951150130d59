"""ORM models for the work kernel."""

from work_kernel.models.reference import DomainModel, LocationModel, ShopGroupModel
from work_kernel.models.work import (
    ActivityModel,
    CustomFieldValueModel,
    StatusTransitionModel,
    WorkModel,
)
from work_kernel.models.work_type import (
    ActivityTypeModel,
    CustomFieldDefinitionModel,
    WorkTypeModel,
)

__all__ = [
    "ActivityModel",
    "ActivityTypeModel",
    "CustomFieldDefinitionModel",
    "CustomFieldValueModel",
    "DomainModel",
    "LocationModel",
    "ShopGroupModel",
    "StatusTransitionModel",
    "WorkModel",
    "WorkTypeModel",
]
