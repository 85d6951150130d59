"""
Tests for work_config: loading, validation and seeding the catalog.

Covers:
- The shipped default set loads and validates
- WORK_DATABASE_URL overrides the configured database
- Every validation error is listed; warnings are logged
- apply_catalog seeds types with their child links and is idempotent
- A seeded catalog drives the orchestrator end to end
"""

from datetime import date

import pytest
import yaml

from work_config import DATABASE_URL_ENV, get_active_config
from work_config.bridges import apply_catalog
from work_config.loader import (
    compute_checksum,
    load_configuration,
    parse_configuration,
    parse_custom_field,
)
from work_config.validator import validate_configuration
from work_kernel.db.engine import session_scope
from work_kernel.domain.dtos import CustomFieldInput, NewActivity, NewWork
from work_kernel.domain.values import ActivityTypeSubtype, ValueType
from work_kernel.domain.workflow_registry import WorkflowRegistry
from work_kernel.selectors.work_selector import WorkSelector
from work_kernel.services.catalog_service import CatalogService


def _document(**catalog_overrides):
    catalog = {
        "locations": [{"name": "Plant"}],
        "shop_groups": [{"name": "Crew", "user_ids": [7, "u2"]}],
        "domains": [
            {
                "name": "Plant",
                "workflows": ["ScheduledJobWorkflow"],
                "activity_types": [{"title": "Check"}],
                "work_types": [
                    {
                        "title": "Routine",
                        "workflow": "ScheduledJobWorkflow",
                        "validator": "DefaultWorkValidation",
                        "activity_types": ["Check"],
                        "child_work_types": ["Routine"],
                    }
                ],
            }
        ],
    }
    catalog.update(catalog_overrides)
    return {
        "config_id": "test",
        "version": 3,
        "engine": {"database_url": "sqlite:///test.db"},
        "catalog": catalog,
    }


def _write(tmp_path, document):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(document, sort_keys=False))
    return path


@pytest.fixture
def no_env_override(monkeypatch):
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)


class TestLoading:
    def test_default_set(self, no_env_override):
        config = get_active_config()

        assert config.config_id == "facility-maintenance"
        assert config.engine.database_url == "sqlite:///work_kernel.db"
        assert len(config.checksum) == 64
        (domain,) = config.catalog.domains
        assert domain.workflow_ids == ("ScheduledJobWorkflow",)
        maintenance = next(w for w in domain.work_types if w.title == "Scheduled Maintenance")
        assert maintenance.child_work_types == ("Corrective Job",)
        due = next(f for f in maintenance.custom_fields if f.name == "due_date")
        assert due.value_type is ValueType.DATE
        assert due.is_mandatory

    def test_database_url_override(self, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://work@db/work")
        assert get_active_config().engine.database_url == "postgresql://work@db/work"

    def test_engine_defaults(self, tmp_path):
        config = load_configuration(_write(tmp_path, _document()))
        assert config.version == 3
        assert config.engine.pool_size == 20
        assert config.engine.max_retries == 5
        assert config.catalog.shop_groups[0].user_ids == ("7", "u2")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_config_id_required(self):
        document = _document()
        del document["config_id"]
        with pytest.raises(KeyError):
            parse_configuration(document)

    def test_unknown_value_type(self):
        with pytest.raises(ValueError, match="Money"):
            parse_custom_field({"name": "amount", "value_type": "Money"})

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})


class TestValidation:
    def test_every_error_listed(self, tmp_path, no_env_override):
        document = _document(locations=[{"name": "Plant"}, {"name": "Plant"}])
        work_type = document["catalog"]["domains"][0]["work_types"][0]
        work_type.update(
            workflow="Kanban",
            validator="Strict",
            child_work_types=["Ghost"],
            activity_types=["Missing"],
        )

        with pytest.raises(ValueError) as exc_info:
            get_active_config(_write(tmp_path, document))

        message = str(exc_info.value)
        for fragment in ("Duplicate location", "Kanban", "Strict", "Ghost", "Missing"):
            assert fragment in message

    def test_workflow_not_enabled_for_domain(self):
        registry = WorkflowRegistry.default()
        document = _document()
        document["catalog"]["domains"][0]["workflows"] = ["OtherWorkflow"]
        result = validate_configuration(parse_configuration(document), registry)
        assert any("OtherWorkflow" in e for e in result.errors)
        assert any("not enabled" in e for e in result.errors)

    def test_duplicate_custom_field_names(self):
        document = _document()
        document["catalog"]["domains"][0]["work_types"][0]["custom_fields"] = [
            {"name": "Due", "value_type": "Date"},
            {"name": "due", "value_type": "String"},
        ]
        result = validate_configuration(parse_configuration(document))
        assert not result.is_valid
        assert "custom field" in result.errors[0]

    def test_bad_engine_settings(self):
        document = _document()
        document["engine"] = {"database_url": "", "pool_size": 0, "max_retries": -1}
        result = validate_configuration(parse_configuration(document))
        assert len(result.errors) == 3

    def test_warnings_logged(self, tmp_path, no_env_override, captured_logs):
        document = _document()
        document["catalog"]["domains"].append({"name": "Empty"})

        config = get_active_config(_write(tmp_path, document))

        assert config.config_id == "test"
        records = captured_logs()
        warning = next(r for r in records if r["message"] == "config_warning")
        assert "Empty" in warning["warning"]
        loaded = next(r for r in records if r["message"] == "config_loaded")
        assert loaded["checksum"] == config.checksum


class TestApplyCatalog:
    def test_default_catalog(self, session_factory, no_env_override):
        catalog = get_active_config().catalog

        with session_scope(session_factory) as s:
            ids = apply_catalog(s, catalog)

        assert set(ids.locations) == {"Building A", "Building B"}
        assert set(ids.shop_groups) == {"Electrical", "Mechanical"}
        with session_scope(session_factory) as s:
            service = CatalogService(s)
            maintenance = service.get_work_type(ids.work_types[("Facilities", "Scheduled Maintenance")])
            corrective = service.get_work_type(ids.work_types[("Facilities", "Corrective Job")])
            repair_id = ids.activity_types[("Facilities", "Repair")]
            assert maintenance.child_work_type_ids == frozenset({corrective.id})
            assert maintenance.version == 2
            assert corrective.activity_type_ids == frozenset({repair_id})
            assert corrective.validator_name == "ReviewCommentRequiredValidation"
            repair = service.get_activity_type(repair_id)
            assert [f.name for f in repair.custom_fields] == ["hours", "parts_replaced"]
            assert service.get_shop_group(ids.shop_groups["Electrical"]).user_ids == (
                "electrician-1",
                "electrician-2",
            )

    def test_idempotent(self, session_factory, no_env_override):
        catalog = get_active_config().catalog
        with session_scope(session_factory) as s:
            first = apply_catalog(s, catalog)
        with session_scope(session_factory) as s:
            second = apply_catalog(s, catalog)

        assert first == second
        with session_scope(session_factory) as s:
            assert len(CatalogService(s).list_work_types()) == 2

    def test_self_referencing_child(self, session_factory):
        catalog = parse_configuration(_document()).catalog
        with session_scope(session_factory) as s:
            ids = apply_catalog(s, catalog)
            routine = CatalogService(s).get_work_type(ids.work_types[("Plant", "Routine")])
        assert routine.child_work_type_ids == frozenset({routine.id})

    def test_seeded_catalog_drives_orchestrator(
        self, session_factory, orchestrator, no_env_override,
    ):
        catalog = get_active_config().catalog
        with session_scope(session_factory) as s:
            ids = apply_catalog(s, catalog)
            maintenance = CatalogService(s).get_work_type(
                ids.work_types[("Facilities", "Scheduled Maintenance")]
            )

        work_id = orchestrator.create_work(
            NewWork(
                domain_id=ids.domains["Facilities"],
                work_type_id=maintenance.id,
                location_id=ids.locations["Building B"],
                shop_group_id=ids.shop_groups["Mechanical"],
                title="Boiler service",
                description="Annual boiler service",
                custom_fields=(
                    CustomFieldInput(maintenance.field_by_name("due_date").id, date(2024, 9, 1)),
                ),
            )
        )
        orchestrator.create_activity(
            NewActivity(
                work_id=work_id,
                activity_type_id=ids.activity_types[("Facilities", "Inspection")],
                subtype=ActivityTypeSubtype.SAFETY,
                title="Flue check",
                description="Check the flue for blockages",
            )
        )

        with session_factory() as s:
            view = WorkSelector(s).get_work_by_id(work_id)
        assert view.current_status == "ScheduledJob"
        assert view.work_number == 1
