"""
Tests for the request coordinator.
"""

from conftest import error_entry, errors_for, reply_for

from cellsense.coordinator import RequestCoordinator
from cellsense.core.diagnostics import DIAGNOSTIC_TAG, DiagnosticReconciler
from cellsense.core.triggers import TARGET_SIGNATURES
from cellsense.engine.messages import RequestEnvelope
from cellsense.settings_schema import NormalizedIntellisenseConfig


def make_coordinator(channel, notebook, **settings):
    config = NormalizedIntellisenseConfig.from_mapping(settings)
    coordinator = RequestCoordinator(channel, DiagnosticReconciler(notebook), config)
    received = {"declarations": [], "signatures": [], "applied": []}
    coordinator.declarationsReceived.connect(lambda reply: received["declarations"].append(reply))
    coordinator.signaturesReceived.connect(lambda reply: received["signatures"].append(reply))
    coordinator.diagnosticsApplied.connect(lambda count: received["applied"].append(count))
    return coordinator, received


def diagnostic_titles(notebook):
    return [marker.title for cell in notebook.cells() for marker in cell.markers(DIAGNOSTIC_TAG)]


class TestRequestCompletion:
    def test_sends_the_envelope(self, channel, notebook):
        coordinator, _ = make_coordinator(channel, notebook)
        envelope = RequestEnvelope.from_notebook(notebook)
        msg_id = coordinator.request_completion(envelope)
        sent = channel.sent[-1]
        assert sent["header"]["msg_id"] == msg_id
        assert sent["header"]["msg_type"] == "intellisense_request"
        assert sent["content"] == envelope.to_content()

    def test_request_kind_is_configurable(self, channel, notebook):
        coordinator, _ = make_coordinator(channel, notebook, request_kind="complete_request")
        coordinator.request_completion(RequestEnvelope.from_notebook(notebook))
        assert channel.sent[-1]["header"]["msg_type"] == "complete_request"

    def test_background_and_foreground_share_one_payload(self, channel, notebook):
        coordinator, _ = make_coordinator(channel, notebook)
        envelope = RequestEnvelope.from_notebook(notebook)
        coordinator.request_completion(envelope)
        coordinator.request_completion(envelope, is_background=True)
        assert channel.sent[0]["content"] == channel.sent[1]["content"]

    def test_every_call_sends(self, channel, notebook):
        coordinator, _ = make_coordinator(channel, notebook)
        envelope = RequestEnvelope.from_notebook(notebook)
        for _ in range(3):
            coordinator.request_completion(envelope)
        assert len(channel.sent) == 3
        assert channel.pending_count() == 3


class TestReplies:
    def test_declarations_reply_is_forwarded(self, channel, notebook):
        coordinator, received = make_coordinator(channel, notebook)
        msg_id = coordinator.request_completion(RequestEnvelope.from_notebook(notebook))
        channel.deliver(reply_for(msg_id, ["Head", "Length"], filter_start_index=3))
        reply = received["declarations"][0]
        assert [item.name for item in reply.items] == ["Head", "Length"]
        assert reply.filter_start == 3

    def test_empty_matches_change_nothing(self, channel, notebook):
        coordinator, received = make_coordinator(channel, notebook)
        msg_id = coordinator.request_completion(RequestEnvelope.from_notebook(notebook))
        channel.deliver(reply_for(msg_id, []))
        assert received["declarations"] == []

    def test_background_reply_never_reaches_the_popups(self, channel, notebook):
        coordinator, received = make_coordinator(channel, notebook)
        msg_id = coordinator.request_completion(RequestEnvelope.from_notebook(notebook), is_background=True)
        channel.deliver(reply_for(msg_id, ["Head"]))
        channel.deliver(errors_for(msg_id, [error_entry(1, message="unbound")]))
        assert received["declarations"] == []
        assert diagnostic_titles(notebook) == ["unbound"]

    def test_signature_reply(self, channel, notebook):
        coordinator, received = make_coordinator(channel, notebook)
        msg_id = coordinator.request_completion(RequestEnvelope.from_notebook(notebook), target=TARGET_SIGNATURES)
        channel.deliver(reply_for(msg_id, [], signatures=["List.map(f, xs)"]))
        assert received["signatures"][0].signatures == ("List.map(f, xs)",)
        assert received["declarations"] == []

    def test_signature_reply_without_signatures(self, channel, notebook):
        coordinator, received = make_coordinator(channel, notebook)
        msg_id = coordinator.request_completion(RequestEnvelope.from_notebook(notebook), target=TARGET_SIGNATURES)
        channel.deliver(reply_for(msg_id, ["map"]))
        assert received["signatures"] == []
        assert received["declarations"] == []

    def test_last_reply_wins_by_default(self, channel, notebook):
        coordinator, received = make_coordinator(channel, notebook)
        envelope = RequestEnvelope.from_notebook(notebook)
        first = coordinator.request_completion(envelope)
        second = coordinator.request_completion(envelope)
        channel.deliver(reply_for(second, ["new"]))
        channel.deliver(reply_for(first, ["old"]))
        assert [reply.items[0].name for reply in received["declarations"]] == ["new", "old"]

    def test_stale_replies_can_be_dropped(self, channel, notebook):
        coordinator, received = make_coordinator(channel, notebook, drop_stale_replies=True)
        envelope = RequestEnvelope.from_notebook(notebook)
        first = coordinator.request_completion(envelope)
        second = coordinator.request_completion(envelope)
        coordinator.request_completion(envelope, is_background=True)
        channel.deliver(reply_for(first, ["old"]))
        channel.deliver(reply_for(second, ["new"]))
        assert [reply.items[0].name for reply in received["declarations"]] == ["new"]


class TestDiagnostics:
    def test_reply_diagnostics_are_reconciled(self, channel, notebook):
        coordinator, received = make_coordinator(channel, notebook)
        msg_id = coordinator.request_completion(RequestEnvelope.from_notebook(notebook))
        channel.deliver(errors_for(msg_id, [error_entry(0, message="first"), error_entry(9, message="gone")]))
        assert diagnostic_titles(notebook) == ["first"]
        assert received["applied"] == [1]

    def test_broadcast_diagnostics_are_reconciled(self, channel, notebook):
        coordinator, received = make_coordinator(channel, notebook)
        channel.deliver(errors_for("exec-3", [error_entry(1, message="after run")], parent_type="execute_request"))
        assert diagnostic_titles(notebook) == ["after run"]

    def test_newer_batch_replaces_markers(self, channel, notebook):
        coordinator, _ = make_coordinator(channel, notebook)
        msg_id = coordinator.request_completion(RequestEnvelope.from_notebook(notebook))
        channel.deliver(errors_for(msg_id, [error_entry(0, message="a"), error_entry(1, message="b")]))
        channel.deliver(errors_for(msg_id, []))
        assert diagnostic_titles(notebook) == []

    def test_log_traffic_setting_reaches_the_channel(self, channel, notebook):
        make_coordinator(channel, notebook, log_traffic=True)
        logged = []
        channel.trafficLogged.connect(lambda direction, payload: logged.append(direction))
        channel.deliver(errors_for("exec-4", []))
        assert logged == ["in"]
