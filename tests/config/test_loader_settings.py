"""
Tests for loader_config: settings resolution, parsing and per-batch contexts.
"""

import textwrap
from uuid import uuid4

import pytest

from loader_config import (
    CONFIG_ENV_VAR,
    EntityLoadDefaults,
    LoaderSettings,
    build_loader_context,
    get_active_settings,
)
from loader_config.loader import compute_checksum, parse_settings
from loader_kernel.domain import LoaderMetadata, LoadOptions, RequestContext, TargetOperation
from loader_kernel.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def _no_env_override(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


@pytest.fixture
def write_settings(tmp_path):
    def _write(body: str, name: str = "settings.yaml"):
        path = tmp_path / name
        path.write_text(textwrap.dedent(body))
        return path

    return _write


@pytest.fixture
def plain_request():
    return RequestContext(session=None, actor_id=uuid4())


class TestGetActiveSettings:
    def test_default_file_ships_entity_defaults(self):
        settings = get_active_settings()

        assert settings.version == 1
        assert settings.defaults == LoadOptions()
        assert settings.logging.level == "INFO"
        assert settings.for_entity("facet").lookup_fields == ("code", "id", "name")
        assert settings.for_entity("customer").lookup_fields == ("email_address", "id")
        inventory = settings.for_entity("inventory")
        assert inventory.lookup_fields == ("sku",)
        assert inventory.skip_duplicates is True
        assert settings.for_entity("product") is None

    def test_explicit_path(self, write_settings):
        path = write_settings(
            """
            version: 3
            defaults:
              skip_duplicates: true
              batch_metadata:
                source: nightly-feed
            entities:
              facet:
                lookup_fields: [code]
            logging:
              level: debug
            """
        )

        settings = get_active_settings(path)

        assert settings.version == 3
        assert settings.defaults.skip_duplicates is True
        assert settings.defaults.batch_metadata == {"source": "nightly-feed"}
        assert settings.entities == (EntityLoadDefaults(entity_type="facet", lookup_fields=("code",)),)
        assert settings.logging.level == "DEBUG"
        assert settings.logging.numeric_level == 10

    def test_environment_variable(self, write_settings, monkeypatch):
        path = write_settings("version: 7\n", name="env.yaml")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert get_active_settings().version == 7

    def test_explicit_path_beats_environment(self, write_settings, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(write_settings("version: 7\n", name="env.yaml")))

        assert get_active_settings(write_settings("version: 2\n")).version == 2

    def test_empty_file_is_all_defaults(self, write_settings):
        settings = get_active_settings(write_settings(""))

        assert settings.version == 1
        assert settings.entities == ()
        assert settings.defaults == LoadOptions()

    def test_missing_file_propagates(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_settings(tmp_path / "absent.yaml")

    @pytest.mark.parametrize(
        "body, fragment",
        [
            ("version: [1\n", ""),
            ("- just\n- a list\n", "must be a mapping"),
            ("version: one\n", "'version' must be an integer"),
            ("defaults:\n  dry_run: maybe\n", "'dry_run' must be true or false"),
            ("defaults:\n  retries: 3\n", "Unknown keys in defaults"),
            ("entities: [facet]\n", "'entities' must be a mapping"),
            ("entities:\n  facet:\n    lookup_fields: code\n", "'lookup_fields' must be a list"),
            ("entities:\n  facet:\n    retry: true\n", "Unknown keys in entities.facet"),
            ("logging:\n  level: chatty\n", "Unknown logging level"),
        ],
    )
    def test_malformed_settings_raise_configuration_error(self, write_settings, body, fragment):
        path = write_settings(body)

        with pytest.raises(ConfigurationError) as exc_info:
            get_active_settings(path)

        assert exc_info.value.code == "LOADER_CONFIG_INVALID"
        assert exc_info.value.source == str(path)
        assert fragment in exc_info.value.reason

    def test_emits_config_trace(self, write_settings, captured_logs):
        path = write_settings("version: 4\nentities:\n  facet: {}\n  customer: {}\n")

        settings = get_active_settings(path)

        trace = next(r for r in captured_logs() if r["message"] == "LOADER_CONFIG_TRACE")
        assert trace["trace_type"] == "LOADER_CONFIG_TRACE"
        assert trace["config_source"] == str(path)
        assert trace["config_version"] == 4
        assert trace["checksum"] == settings.checksum
        assert trace["entity_default_count"] == 2


class TestChecksum:
    def test_equal_documents_hash_equal(self):
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})

    def test_changes_alter_checksum(self):
        assert compute_checksum({"version": 1}) != compute_checksum({"version": 2})

    def test_settings_carry_checksum_of_source(self):
        data = {"version": 1, "defaults": {"dry_run": True}}
        assert parse_settings(data).checksum == compute_checksum(data)


class TestBuildLoaderContext:
    @pytest.fixture
    def settings(self):
        return LoaderSettings(
            defaults=LoadOptions(skip_duplicates=False, batch_metadata={"source": "feed"}),
            entities=(
                EntityLoadDefaults(entity_type="facet", lookup_fields=("code", "id"), skip_duplicates=True),
                EntityLoadDefaults(entity_type="tax_rate", update_only_fields=("value",)),
            ),
        )

    def test_entity_defaults_over_global(self, settings, plain_request):
        context = build_loader_context(settings, plain_request, "facet", "UPSERT")

        assert context.operation is TargetOperation.UPSERT
        assert context.lookup_fields == ("code", "id")
        assert context.options.skip_duplicates is True
        assert context.options.dry_run is False
        assert context.ctx is plain_request

    def test_overrides_beat_entity_defaults(self, settings, plain_request):
        context = build_loader_context(
            settings,
            plain_request,
            "facet",
            TargetOperation.CREATE,
            ["name"],
            skip_duplicates=False,
            dry_run=True,
        )

        assert context.lookup_fields == ("name",)
        assert context.options.skip_duplicates is False
        assert context.options.dry_run is True

    def test_update_only_fields_from_entity(self, settings, plain_request):
        context = build_loader_context(settings, plain_request, "tax_rate", "UPDATE")
        assert context.options.update_only_fields == ("value",)

    def test_batch_metadata_is_merged(self, settings, plain_request):
        context = build_loader_context(
            settings, plain_request, "facet", "CREATE", batch_metadata={"batch_id": "b-1"}
        )
        assert context.options.batch_metadata == {"source": "feed", "batch_id": "b-1"}

    def test_lookup_fields_fall_back_to_metadata(self, settings, plain_request):
        metadata = LoaderMetadata(
            entity_type="stock_location",
            name="Stock Locations",
            description="",
            supported_operations=(TargetOperation.UPSERT,),
            lookup_fields=("name", "id"),
        )

        context = build_loader_context(settings, plain_request, "stock_location", "UPSERT", metadata=metadata)

        assert context.lookup_fields == ("name", "id")

    def test_no_lookup_fields_anywhere(self, settings, plain_request):
        assert build_loader_context(settings, plain_request, "customer", "CREATE").lookup_fields == ()

    def test_unknown_override_rejected(self, settings, plain_request):
        with pytest.raises(TypeError, match="retries"):
            build_loader_context(settings, plain_request, "facet", "CREATE", retries=3)

    def test_unknown_operation_rejected(self, settings, plain_request):
        with pytest.raises(ValueError):
            build_loader_context(settings, plain_request, "facet", "MERGE")
