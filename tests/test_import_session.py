"""Tests for the import session state machine."""
import threading
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from src.crm_tool.schemas.csv_import import ImportResult
from src.crm_tool.services.entities import EntityType
from src.crm_tool.services.import_committer import (
    HttpImportCommitter,
    ImportCommitter,
    LocalImportCommitter,
)
from src.crm_tool.services.import_errors import (
    CSVParseError,
    CommitTransportError,
    ImportInProgressError,
    ImportStateError,
    MappingValidationError,
)
from src.crm_tool.services.import_session import (
    IMPORT_SESSIONS,
    ImportSessionController,
    ImportStep,
    clear_sessions,
    create_session,
    delete_session,
    get_session,
    purge_expired_sessions,
)
from src.crm_tool.services.notifications import CollectingCacheInvalidator, CollectingNotifier


class RecordingCommitter(ImportCommitter):
    def __init__(self, fail_with=None):
        self.batches = []
        self.fail_with = fail_with

    def commit(self, entity_type, records):
        self.batches.append((entity_type, records))
        if self.fail_with:
            raise self.fail_with
        return ImportResult(attempted=len(records), succeeded=list(records), failed_count=0)


CSV = (
    "firstName,lastName,Email Address\n"
    + "".join(f"First{i},Last{i},user{i}@example.com\n" for i in range(8))
).encode("utf-8")


def make_controller(committer=None, **kwargs):
    notifier = CollectingNotifier()
    invalidator = CollectingCacheInvalidator()
    controller = ImportSessionController(
        EntityType.CONTACTS,
        committer or RecordingCommitter(),
        notifier,
        invalidator,
        **kwargs
    )
    return controller, notifier, invalidator


def test_load_file_seeds_mapping_and_moves_to_map():
    controller, _, _ = make_controller()

    controller.load_file("people.csv", CSV)

    assert controller.step == ImportStep.MAP
    assert controller.headers == ["firstName", "lastName", "Email Address"]
    assert len(controller.rows) == 8
    assert controller.mapping["firstName"] == "firstName"
    assert controller.mapping["email"] == "Email Address"
    assert controller.mapping["phone"] is None


def test_parse_error_stays_in_upload_and_notifies():
    controller, notifier, _ = make_controller()

    with pytest.raises(CSVParseError):
        controller.load_file("empty.csv", b"")

    assert controller.step == ImportStep.UPLOAD
    assert controller.rows == []
    assert notifier.notifications[0].kind == "error"
    assert notifier.notifications[0].message.startswith("Error parsing CSV file")


def test_preview_shows_first_rows_with_current_mapping():
    controller, _, _ = make_controller()
    controller.load_file("people.csv", CSV)
    controller.update_mapping("email", None)

    preview = controller.continue_to_preview()

    assert controller.step == ImportStep.PREVIEW
    assert len(preview) == 5
    assert preview[0] == {"firstName": "First0", "lastName": "Last0"}


def test_preview_size_is_configurable():
    controller, _, _ = make_controller(preview_size=2)
    controller.load_file("people.csv", CSV)

    assert len(controller.continue_to_preview()) == 2


def test_all_skipped_mapping_previews_empty_rows():
    controller, _, _ = make_controller()
    controller.load_file("people.csv", CSV)
    for key in list(controller.mapping):
        controller.update_mapping(key, None)

    preview = controller.continue_to_preview()

    assert preview == [{}, {}, {}, {}, {}]


def test_unmapped_required_fields_do_not_block_by_default():
    controller, _, _ = make_controller()
    controller.load_file("people.csv", CSV)
    controller.update_mapping("lastName", None)

    controller.continue_to_preview()

    assert controller.step == ImportStep.PREVIEW
    assert controller.missing_required == ["lastName"]


def test_required_field_validation_can_be_enabled():
    controller, _, _ = make_controller(require_mapped_fields=True)
    controller.load_file("people.csv", CSV)
    controller.update_mapping("lastName", None)

    with pytest.raises(MappingValidationError) as exc_info:
        controller.continue_to_preview()

    assert exc_info.value.missing == ["lastName"]
    assert controller.step == ImportStep.MAP


def test_update_mapping_rejects_unknown_field_and_column():
    controller, _, _ = make_controller()
    controller.load_file("people.csv", CSV)

    with pytest.raises(ImportStateError, match="Unknown field"):
        controller.update_mapping("birthday", "firstName")
    with pytest.raises(ImportStateError, match="Unknown column"):
        controller.update_mapping("phone", "Mobile")


def test_invalid_mapping_batch_changes_nothing():
    controller, _, _ = make_controller()
    controller.load_file("people.csv", CSV)
    before = dict(controller.mapping)

    with pytest.raises(ImportStateError, match="Unknown field 'bogus'"):
        controller.update_mappings({"phone": "Email Address", "bogus": "Email Address"})

    assert controller.mapping == before


def test_mapping_batch_applies_every_entry():
    controller, _, _ = make_controller()
    controller.load_file("people.csv", CSV)

    controller.update_mappings({"phone": "Email Address", "email": None})

    assert controller.mapping["phone"] == "Email Address"
    assert controller.mapping["email"] is None


def test_back_returns_to_map():
    controller, _, _ = make_controller()
    controller.load_file("people.csv", CSV)
    controller.continue_to_preview()

    controller.back_to_map()
    controller.update_mapping("phone", "Email Address")

    assert controller.step == ImportStep.MAP


def test_commit_sends_every_row_not_just_the_preview():
    committer = RecordingCommitter()
    controller, notifier, invalidator = make_controller(committer)
    controller.load_file("people.csv", CSV)
    controller.continue_to_preview()

    result = controller.commit()

    entity_type, records = committer.batches[0]
    assert entity_type == EntityType.CONTACTS
    assert len(records) == 8
    assert records[7]["email"] == "user7@example.com"
    assert result.attempted == 8
    assert controller.step == ImportStep.COMPLETE
    assert notifier.notifications[-1].kind == "success"
    assert notifier.notifications[-1].message == "Successfully imported 8 out of 8 contacts"
    assert invalidator.invalidated == ["/api/contacts"]


def test_transport_failure_stays_in_preview_for_retry():
    committer = RecordingCommitter(fail_with=CommitTransportError("connection refused"))
    controller, notifier, invalidator = make_controller(committer)
    controller.load_file("people.csv", CSV)
    controller.continue_to_preview()

    with pytest.raises(CommitTransportError):
        controller.commit()

    assert controller.step == ImportStep.PREVIEW
    assert controller.result is None
    assert not controller.is_processing
    assert notifier.notifications[-1].kind == "error"
    assert invalidator.invalidated == []

    committer.fail_with = None
    controller.commit()
    assert controller.step == ImportStep.COMPLETE


def test_commit_requires_preview_step():
    controller, _, _ = make_controller()
    controller.load_file("people.csv", CSV)

    with pytest.raises(ImportStateError, match="'map' step"):
        controller.commit()


def test_header_only_file_cannot_reach_preview():
    controller, _, _ = make_controller()
    controller.load_file("header-only.csv", b"firstName,lastName\n")

    with pytest.raises(ImportStateError, match="no records"):
        controller.continue_to_preview()

    assert controller.step == ImportStep.MAP
    assert controller.preview_rows == []


def test_second_commit_while_first_runs_is_refused():
    started = threading.Event()
    release = threading.Event()

    class SlowCommitter(RecordingCommitter):
        def commit(self, entity_type, records):
            started.set()
            release.wait(timeout=5)
            return super().commit(entity_type, records)

    committer = SlowCommitter()
    controller, _, _ = make_controller(committer)
    controller.load_file("people.csv", CSV)
    controller.continue_to_preview()

    worker = threading.Thread(target=controller.commit)
    worker.start()
    started.wait(timeout=5)
    try:
        assert controller.is_processing
        with pytest.raises(ImportInProgressError):
            controller.commit()
        with pytest.raises(ImportInProgressError):
            controller.reset()
    finally:
        release.set()
        worker.join(timeout=5)

    assert len(committer.batches) == 1
    assert controller.step == ImportStep.COMPLETE


def test_reset_clears_everything():
    controller, _, _ = make_controller()
    controller.load_file("people.csv", CSV)
    controller.continue_to_preview()
    controller.commit()

    controller.reset()

    assert controller.step == ImportStep.UPLOAD
    assert controller.filename is None
    assert controller.rows == []
    assert controller.mapping == {}
    assert controller.result is None


def test_file_cannot_be_loaded_after_completion_without_reset():
    controller, _, _ = make_controller()
    controller.load_file("people.csv", CSV)
    controller.continue_to_preview()
    controller.commit()

    with pytest.raises(ImportStateError):
        controller.load_file("more.csv", CSV)


def test_local_committer_partial_failures_reach_the_notifier(session_factory):
    csv_bytes = (
        "firstName,lastName,email\n"
        "Ada,Lovelace,ada@example.com\n"
        "Grace,Hopper,not-an-email\n"
        "Alan\n"
    ).encode("utf-8")
    controller, notifier, _ = make_controller(LocalImportCommitter(session_factory))
    controller.load_file("people.csv", csv_bytes)
    controller.continue_to_preview()

    result = controller.commit()

    assert result.attempted == 3
    assert result.succeeded_count == 1
    assert result.failed_count == 2
    assert [f.index for f in result.failures] == [1, 2]
    assert notifier.notifications[-1].kind == "warning"
    assert notifier.notifications[-1].message == "Successfully imported 1 out of 3 contacts"


class TestSessionRegistry:

    def setup_method(self):
        IMPORT_SESSIONS.clear()

    def teardown_method(self):
        IMPORT_SESSIONS.clear()

    def test_sessions_are_registered_and_retrievable(self):
        session = create_session(EntityType.DEALS, RecordingCommitter())

        assert get_session(session.session_id) is session
        state = session.to_state()
        assert state.entity_type == "deals"
        assert state.step == "upload"
        assert [f.key for f in state.fields] == ["title", "contactId", "stage", "amount", "description"]

    def test_unknown_session_raises_key_error(self):
        with pytest.raises(KeyError):
            get_session("missing")

    def test_idle_sessions_expire(self):
        stale = create_session(EntityType.CONTACTS, RecordingCommitter())
        fresh = create_session(EntityType.CONTACTS, RecordingCommitter())
        stale.last_used_at = datetime.now(timezone.utc) - timedelta(days=1)

        assert purge_expired_sessions() == 1
        assert stale.session_id not in IMPORT_SESSIONS
        assert fresh.session_id in IMPORT_SESSIONS

    def test_expired_session_is_not_returned(self):
        session = create_session(EntityType.CONTACTS, RecordingCommitter())
        session.last_used_at = datetime.now(timezone.utc) - timedelta(days=3)

        with pytest.raises(KeyError):
            get_session(session.session_id)
        assert session.session_id not in IMPORT_SESSIONS

    def test_lookup_refreshes_last_used(self):
        session = create_session(EntityType.CONTACTS, RecordingCommitter())
        old = datetime.now(timezone.utc) - timedelta(minutes=30)
        session.last_used_at = old

        assert get_session(session.session_id) is session
        assert session.last_used_at > old

    def test_committer_is_closed_when_session_is_deleted(self):
        client = httpx.Client(base_url="http://crm")
        session = create_session(EntityType.CONTACTS, HttpImportCommitter(client=client))

        delete_session(session.session_id)

        assert client.is_closed
        assert session.session_id not in IMPORT_SESSIONS

    def test_committers_are_closed_when_purged_or_cleared(self):
        stale_client = httpx.Client(base_url="http://crm")
        live_client = httpx.Client(base_url="http://crm")
        stale = create_session(EntityType.CONTACTS, HttpImportCommitter(client=stale_client))
        create_session(EntityType.DEALS, HttpImportCommitter(client=live_client))
        stale.last_used_at = datetime.now(timezone.utc) - timedelta(days=1)

        purge_expired_sessions()
        assert stale_client.is_closed
        assert not live_client.is_closed

        clear_sessions()
        assert live_client.is_closed
        assert IMPORT_SESSIONS == {}

    def test_concurrent_create_and_delete_keep_registry_consistent(self):
        errors = []

        def churn():
            try:
                for _ in range(50):
                    session = create_session(EntityType.CONTACTS, RecordingCommitter())
                    delete_session(session.session_id)
            except RuntimeError as e:
                errors.append(e)

        threads = [threading.Thread(target=churn) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert errors == []
        assert IMPORT_SESSIONS == {}
