# tests/test_event_dispatch.py
"""
Tests for domain events and reaction dispatch.

Tests cover:
- Payload validation and immutability of recorded events
- Registration-order dispatch
- Reaction isolation (failures are recorded and logged, never raised)
- Asynchronous dispatch through Celery on commit
"""

from uuid import uuid4

import pytest

from accounts.models import Company
from events.dispatcher import dispatch_event, emit
from events.models import DomainEvent, ReactionRun
from events.reactions import BaseReaction, ReactionRegistry, reaction_registry
from events.types import EventTypes, InvalidEventPayload, PasswordResetData


class RecordingReaction(BaseReaction):
    def __init__(self, name, calls, error=None, effect=None):
        self._name = name
        self.calls = calls
        self.error = error
        self.effect = effect

    @property
    def name(self):
        return self._name

    @property
    def consumes(self):
        return [EventTypes.USER_PASSWORD_RESET]

    def handle(self, event):
        self.calls.append(self._name)
        if self.effect is not None:
            self.effect(event)
        if self.error is not None:
            raise self.error


@pytest.fixture
def register():
    registered = []

    def _register(reaction):
        reaction_registry.register(reaction)
        registered.append(reaction.name)
        return reaction

    yield _register
    for name in registered:
        reaction_registry.unregister(name)


def _payload():
    return PasswordResetData(user_public_id=str(uuid4()), email="someone@test.com")


def _emit(user=None):
    return emit(
        EventTypes.USER_PASSWORD_RESET,
        _payload(),
        aggregate_type="User",
        aggregate_id=uuid4(),
        user=user,
    )


# =============================================================================
# Recording
# =============================================================================

@pytest.mark.django_db
class TestEventRecording:
    def test_emit_records_event(self, client_user):
        event = _emit(user=client_user)

        stored = DomainEvent.objects.get(id=event.id)
        assert stored.event_type == EventTypes.USER_PASSWORD_RESET
        assert stored.aggregate_type == "User"
        assert stored.caused_by_user == client_user
        assert stored.data["email"] == "someone@test.com"

    def test_missing_field_rejected(self):
        with pytest.raises(InvalidEventPayload, match="user_public_id"):
            emit(EventTypes.USER_PASSWORD_RESET, {"email": "x@test.com"}, aggregate_type="User", aggregate_id="1")
        assert DomainEvent.objects.count() == 0

    def test_unexpected_field_rejected(self):
        data = {"user_public_id": "1", "email": "x@test.com", "extra": True}
        with pytest.raises(InvalidEventPayload, match="Unexpected fields"):
            emit(EventTypes.USER_PASSWORD_RESET, data, aggregate_type="User", aggregate_id="1")

    def test_secrets_rejected_at_any_depth(self):
        data = {
            "company_public_id": "1",
            "name": "Acme",
            "email": "",
            "contact_person": {"email": "j@acme.com", "password": "hunter22"},
        }
        with pytest.raises(InvalidEventPayload, match="secrets"):
            emit(EventTypes.COMPANY_CREATED, data, aggregate_type="Company", aggregate_id="1")

    def test_unknown_event_type_rejected(self):
        with pytest.raises(ValueError):
            emit("user.teleported", {}, aggregate_type="User", aggregate_id="1")

    def test_events_are_immutable(self):
        event = _emit()
        event.data["email"] = "changed@test.com"
        with pytest.raises(ValueError, match="immutable"):
            event.save()
        with pytest.raises(ValueError, match="immutable"):
            event.delete()


# =============================================================================
# Dispatch
# =============================================================================

@pytest.mark.django_db
class TestDispatch:
    def test_reactions_run_in_registration_order(self, register):
        calls = []
        register(RecordingReaction("test_first", calls))
        register(RecordingReaction("test_second", calls))

        event = _emit()

        assert calls == ["test_first", "test_second"]
        statuses = dict(event.reaction_runs.values_list("reaction_name", "status"))
        assert statuses == {
            "test_first": ReactionRun.Status.SUCCEEDED,
            "test_second": ReactionRun.Status.SUCCEEDED,
        }

    def test_failing_reaction_is_isolated(self, register, app_logs):
        calls = []

        def create_company(event):
            Company.objects.create(name="Half Done")

        register(RecordingReaction("test_broken", calls, error=RuntimeError("boom"), effect=create_company))
        register(RecordingReaction("test_healthy", calls))

        event = _emit()

        assert calls == ["test_broken", "test_healthy"]
        assert not Company.objects.filter(name="Half Done").exists()

        broken = ReactionRun.objects.get(event=event, reaction_name="test_broken")
        assert broken.status == ReactionRun.Status.FAILED
        assert broken.attempts == 1
        assert "boom" in broken.last_error
        assert ReactionRun.objects.get(event=event, reaction_name="test_healthy").status == ReactionRun.Status.SUCCEEDED

        failures = [r for r in app_logs.records if r.getMessage() == "reaction_failed"]
        assert len(failures) == 1
        assert failures[0].reaction == "test_broken"
        assert failures[0].event_id == str(event.id)
        assert failures[0].event_type == EventTypes.USER_PASSWORD_RESET
        assert failures[0].payload == event.data

    def test_redispatch_skips_succeeded_runs(self, register):
        calls = []
        register(RecordingReaction("test_once", calls))
        flaky = register(RecordingReaction("test_flaky", calls, error=RuntimeError("down")))

        event = _emit()
        flaky.error = None
        results = dispatch_event(event)

        assert calls == ["test_once", "test_flaky", "test_flaky"]
        assert results == {"test_once": "SUCCEEDED", "test_flaky": "SUCCEEDED"}
        assert ReactionRun.objects.get(event=event, reaction_name="test_flaky").attempts == 2

    def test_event_without_reactions_has_no_runs(self):
        event = _emit()
        assert not event.reaction_runs.exists()


@pytest.mark.django_db
class TestAsyncDispatch:
    def test_enqueued_on_commit(self, settings, register, monkeypatch, django_capture_on_commit_callbacks):
        settings.REACTIONS_SYNC = False
        calls, enqueued = [], []
        register(RecordingReaction("test_async", calls))
        monkeypatch.setattr("events.tasks.dispatch_event_task.delay", lambda event_id: enqueued.append(event_id))

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            event = _emit()
            assert enqueued == []

        assert len(callbacks) == 1
        assert enqueued == [str(event.id)]
        assert calls == []

    def test_enqueue_failure_is_logged(self, settings, register, monkeypatch, django_capture_on_commit_callbacks, app_logs):
        settings.REACTIONS_SYNC = False
        register(RecordingReaction("test_async", []))

        def broker_down(event_id):
            raise ConnectionError("broker unreachable")

        monkeypatch.setattr("events.tasks.dispatch_event_task.delay", broker_down)

        with django_capture_on_commit_callbacks(execute=True):
            event = _emit()

        assert DomainEvent.objects.filter(id=event.id).exists()
        assert any(r.getMessage() == "reaction_enqueue_failed" for r in app_logs.records)

    def test_task_dispatches_event(self, register):
        from events.tasks import dispatch_event_task

        calls = []
        event = _emit()
        register(RecordingReaction("test_task", calls))

        dispatch_event_task.apply(args=[str(event.id)])

        assert calls == ["test_task"]


class TestRegistry:
    def test_name_clash_with_other_type_rejected(self):
        registry = ReactionRegistry()
        registry.register(RecordingReaction("clash", []))

        class Other(RecordingReaction):
            pass

        with pytest.raises(ValueError, match="already registered"):
            registry.register(Other("clash", []))

    def test_same_reaction_registered_twice_is_ignored(self):
        registry = ReactionRegistry()
        registry.register(RecordingReaction("same", []))
        registry.register(RecordingReaction("same", []))
        assert len(registry.for_event_type(EventTypes.USER_PASSWORD_RESET)) == 1

    def test_unregister(self):
        registry = ReactionRegistry()
        registry.register(RecordingReaction("gone", []))
        registry.unregister("gone")
        assert registry.for_event_type(EventTypes.USER_PASSWORD_RESET) == []
        assert registry.get("gone") is None
