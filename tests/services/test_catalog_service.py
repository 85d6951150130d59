"""
Tests for CatalogService.

Covers:
- Domains, locations, shop-groups: create, resolve, duplicates
- Work-type binding checks (registry keys, domain-enabled workflows)
- Version-guarded updates of work-types and activity-types
- Reference-guarded deletes
"""

from uuid import uuid4

import pytest

from work_kernel.db.engine import session_scope
from work_kernel.domain.dtos import CustomFieldDefinition
from work_kernel.domain.values import ValueType
from work_kernel.exceptions import (
    ActivityTypeNotFoundError,
    ConcurrentModificationError,
    DomainNotFoundError,
    DuplicateNameError,
    LocationNotFoundError,
    ShopGroupNotFoundError,
    ValidatorNotFoundError,
    WorkflowNotFoundError,
    WorkTypeNotFoundError,
    WorkTypeReferencedError,
)
from work_kernel.services.catalog_service import CatalogService

WORKFLOW = "ScheduledJobWorkflow"
VALIDATOR = "DefaultWorkValidation"


@pytest.fixture
def catalog(session, deterministic_clock):
    return CatalogService(session, clock=deterministic_clock)


@pytest.fixture
def domain(catalog):
    return catalog.create_domain("Facilities", workflow_ids=[WORKFLOW])


class TestReferenceRecords:
    def test_create_and_get_domain(self, catalog):
        created = catalog.create_domain("Facilities", "Buildings", [WORKFLOW])
        fetched = catalog.get_domain(created.id)
        assert fetched == created
        assert fetched.workflow_ids == (WORKFLOW,)
        assert catalog.find_domain_by_name("Facilities") == created
        assert catalog.find_domain_by_name("Nope") is None

    def test_domain_with_unknown_workflow(self, catalog):
        with pytest.raises(WorkflowNotFoundError):
            catalog.create_domain("Facilities", workflow_ids=["Kanban"])

    def test_duplicate_domain(self, catalog):
        catalog.create_domain("Facilities")
        with pytest.raises(DuplicateNameError) as exc_info:
            catalog.create_domain("Facilities")
        assert exc_info.value.entity_type == "domain"

    def test_unknown_ids(self, catalog):
        with pytest.raises(DomainNotFoundError):
            catalog.get_domain(uuid4())
        with pytest.raises(LocationNotFoundError):
            catalog.get_location(uuid4())
        with pytest.raises(ShopGroupNotFoundError):
            catalog.get_shop_group(uuid4())

    def test_location_and_shop_group(self, catalog):
        location = catalog.create_location("Building A", "Main")
        group = catalog.create_shop_group("Electrical", user_ids=["u1", "u2"])
        assert catalog.get_location(location.id).name == "Building A"
        assert catalog.get_shop_group(group.id).user_ids == ("u1", "u2")
        assert catalog.find_shop_group_by_name("Electrical") == group
        with pytest.raises(DuplicateNameError):
            catalog.create_location("Building A")


class TestWorkTypes:
    def test_create_round_trips_fields_and_links(self, catalog, domain):
        inspection = catalog.create_activity_type(domain.id, "Inspection")
        child = catalog.create_work_type(domain.id, "Child", WORKFLOW, VALIDATOR)
        due = CustomFieldDefinition.create("due_date", ValueType.DATE, is_mandatory=True)
        work_type = catalog.create_work_type(
            domain.id,
            "Parent",
            WORKFLOW,
            VALIDATOR,
            custom_fields=[due],
            child_work_type_ids=[child.id],
            activity_type_ids=[inspection.id],
        )

        fetched = catalog.get_work_type(work_type.id)
        assert fetched.version == 1
        assert fetched.custom_fields == (due,)
        assert fetched.child_work_type_ids == frozenset({child.id})
        assert fetched.activity_type_ids == frozenset({inspection.id})
        assert fetched.field_by_name("DUE_DATE") == due

    def test_unknown_workflow_or_validator(self, catalog, domain):
        with pytest.raises(WorkflowNotFoundError):
            catalog.create_work_type(domain.id, "T", "Kanban", VALIDATOR)
        with pytest.raises(ValidatorNotFoundError):
            catalog.create_work_type(domain.id, "T", WORKFLOW, "Strict")

    def test_workflow_must_be_enabled_for_domain(self, catalog, registry):
        from work_kernel.domain.workflows.base import WorkTypeWorkflow
        from work_kernel.domain.workflows.scheduled_job import (
            ACTIVITY_WORKFLOW,
            SCHEDULED_JOB_WORK_WORKFLOW,
        )

        registry.register_workflow(
            WorkTypeWorkflow(
                workflow_id="Other",
                description="",
                work=SCHEDULED_JOB_WORK_WORKFLOW,
                activity=ACTIVITY_WORKFLOW,
                activity_creation_states=frozenset({"New"}),
            )
        )
        service = CatalogService(catalog.session, registry=registry)
        restricted = service.create_domain("Restricted", workflow_ids=[WORKFLOW])
        with pytest.raises(WorkflowNotFoundError):
            service.create_work_type(restricted.id, "T", "Other", VALIDATOR)

    def test_dangling_child_reference(self, catalog, domain):
        with pytest.raises(WorkTypeNotFoundError):
            catalog.create_work_type(
                domain.id, "T", WORKFLOW, VALIDATOR, child_work_type_ids=[uuid4()]
            )
        with pytest.raises(ActivityTypeNotFoundError):
            catalog.create_work_type(
                domain.id, "T", WORKFLOW, VALIDATOR, activity_type_ids=[uuid4()]
            )

    def test_title_unique_per_domain(self, catalog, domain):
        other = catalog.create_domain("Fleet")
        catalog.create_work_type(domain.id, "Inspection", WORKFLOW, VALIDATOR)
        catalog.create_work_type(other.id, "Inspection", WORKFLOW, VALIDATOR)
        with pytest.raises(DuplicateNameError):
            catalog.create_work_type(domain.id, "Inspection", WORKFLOW, VALIDATOR)

    def test_custom_field_names_unique_ignoring_case(self, catalog, domain):
        fields = [
            CustomFieldDefinition.create("Priority", ValueType.NUMBER, is_mandatory=True),
            CustomFieldDefinition.create("priority", ValueType.STRING, is_mandatory=True),
        ]
        with pytest.raises(DuplicateNameError) as exc_info:
            catalog.create_work_type(domain.id, "T", WORKFLOW, VALIDATOR, custom_fields=fields)
        assert exc_info.value.entity_type == "custom_field"
        with pytest.raises(DuplicateNameError):
            catalog.create_activity_type(domain.id, "A", custom_fields=fields)

        work_type = catalog.create_work_type(
            domain.id, "T", WORKFLOW, VALIDATOR, custom_fields=fields[:1]
        )
        with pytest.raises(DuplicateNameError):
            catalog.update_work_type(work_type.id, expected_version=1, custom_fields=fields)

    def test_list_and_find(self, catalog, domain):
        b = catalog.create_work_type(domain.id, "B", WORKFLOW, VALIDATOR)
        a = catalog.create_work_type(domain.id, "A", WORKFLOW, VALIDATOR)
        assert [t.id for t in catalog.list_work_types(domain.id)] == [a.id, b.id]
        assert catalog.find_work_type_by_title(domain.id, "B") == b
        assert catalog.find_work_type_by_title(domain.id, "C") is None


class TestVersionedUpdates:
    def test_update_increments_version(self, catalog, domain):
        work_type = catalog.create_work_type(domain.id, "T", WORKFLOW, VALIDATOR)
        updated = catalog.update_work_type(
            work_type.id, expected_version=1, description="changed"
        )
        assert updated.version == 2
        assert updated.description == "changed"

        again = catalog.update_work_type(work_type.id, expected_version=2, title="Renamed")
        assert again.version == 3
        assert again.title == "Renamed"

    def test_stale_version_is_refused(self, catalog, domain):
        work_type = catalog.create_work_type(domain.id, "T", WORKFLOW, VALIDATOR)
        catalog.update_work_type(work_type.id, expected_version=1, description="first")
        with pytest.raises(ConcurrentModificationError) as exc_info:
            catalog.update_work_type(work_type.id, expected_version=1, description="second")
        assert exc_info.value.entity_type == "work_type"
        assert catalog.get_work_type(work_type.id).description == "first"

    def test_field_definitions_reconciled_by_id(self, catalog, domain):
        due = CustomFieldDefinition.create("due_date", ValueType.DATE)
        tag = CustomFieldDefinition.create("asset_tag", ValueType.STRING)
        work_type = catalog.create_work_type(
            domain.id, "T", WORKFLOW, VALIDATOR, custom_fields=[due, tag]
        )

        renamed = CustomFieldDefinition(
            id=due.id, name="due", value_type=ValueType.DATE, is_mandatory=True
        )
        extra = CustomFieldDefinition.create("priority", ValueType.NUMBER)
        updated = catalog.update_work_type(
            work_type.id, expected_version=1, custom_fields=[extra, renamed]
        )

        assert updated.version == 2
        assert [f.name for f in updated.custom_fields] == ["priority", "due"]
        assert updated.custom_fields[1].id == due.id
        assert updated.custom_fields[1].is_mandatory

    def test_only_child_links_change_still_bumps_version(self, catalog, domain):
        child = catalog.create_work_type(domain.id, "Child", WORKFLOW, VALIDATOR)
        parent = catalog.create_work_type(domain.id, "Parent", WORKFLOW, VALIDATOR)
        updated = catalog.update_work_type(
            parent.id, expected_version=1, child_work_type_ids=[child.id]
        )
        assert updated.version == 2
        assert updated.child_work_type_ids == frozenset({child.id})

    def test_rebinding_checks_registry(self, catalog, domain):
        work_type = catalog.create_work_type(domain.id, "T", WORKFLOW, VALIDATOR)
        with pytest.raises(ValidatorNotFoundError):
            catalog.update_work_type(work_type.id, expected_version=1, validator_name="Strict")
        updated = catalog.update_work_type(
            work_type.id, expected_version=1, validator_name="ReviewCommentRequiredValidation"
        )
        assert updated.validator_name == "ReviewCommentRequiredValidation"

    def test_activity_type_update(self, catalog, domain):
        activity_type = catalog.create_activity_type(domain.id, "Inspection")
        updated = catalog.update_activity_type(
            activity_type.id,
            expected_version=1,
            custom_fields=[CustomFieldDefinition.create("findings", ValueType.STRING)],
        )
        assert updated.version == 2
        assert [f.name for f in updated.custom_fields] == ["findings"]
        with pytest.raises(ConcurrentModificationError):
            catalog.update_activity_type(activity_type.id, expected_version=1, title="X")


class TestDeletes:
    def test_unreferenced_types_can_be_deleted(self, catalog, domain):
        work_type = catalog.create_work_type(
            domain.id,
            "T",
            WORKFLOW,
            VALIDATOR,
            custom_fields=[CustomFieldDefinition.create("f", ValueType.STRING)],
        )
        activity_type = catalog.create_activity_type(domain.id, "A")
        catalog.delete_work_type(work_type.id)
        catalog.delete_activity_type(activity_type.id)
        with pytest.raises(WorkTypeNotFoundError):
            catalog.get_work_type(work_type.id)
        with pytest.raises(ActivityTypeNotFoundError):
            catalog.get_activity_type(activity_type.id)

    def test_referenced_types_are_kept(
        self, session_factory, seeded_catalog, orchestrator, make_new_work, make_new_activity,
    ):
        work_id = orchestrator.create_work(make_new_work())
        orchestrator.create_activity(make_new_activity(work_id))

        with session_scope(session_factory) as s:
            service = CatalogService(s)
            with pytest.raises(WorkTypeReferencedError) as exc_info:
                service.delete_work_type(seeded_catalog.maintenance.id)
            assert exc_info.value.reference_count == 1
            with pytest.raises(WorkTypeReferencedError):
                service.delete_activity_type(seeded_catalog.inspection.id)
            assert service.get_work_type(seeded_catalog.maintenance.id)
