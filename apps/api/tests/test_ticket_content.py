import json

from ticketflow.schemas.freshdesk import RawTurn
from ticketflow.schemas.ticket_content import TicketContent
from ticketflow.services import ticket_content
from ticketflow.services.ticket_content import (
    build_ticket_content,
    parse_ticket_content,
    serialize_ticket_content,
)


def test_build_drops_blank_turns_and_keeps_order():
    turns = [
        RawTurn(id=1, body_text="First", private=False, incoming=True, user_id=3),
        {"id": 2, "body_text": "  "},
        {"id": 3, "body_text": "Second", "private": True},
    ]

    content = build_ticket_content("Printer on fire", turns)

    assert content.kind == "conversation_document"
    assert [turn.id for turn in content.conversations] == [1, 3]
    assert content.conversations[1].is_private is True


def test_serialized_document_uses_camel_case():
    content = build_ticket_content(
        "Printer on fire",
        [{"id": 1, "body_text": "Hi", "private": False, "user_id": 3, "created_at": "2026-03-01"}],
    )

    document = json.loads(serialize_ticket_content(content))

    assert document["kind"] == "conversation_document"
    assert document["description"] == "Printer on fire"
    assert document["conversations"][0] == {
        "id": 1,
        "bodyText": "Hi",
        "isPrivate": False,
        "incoming": None,
        "userId": 3,
        "createdAt": "2026-03-01",
    }


def test_serialization_failure_falls_back_to_description(monkeypatch):
    def _explode(self, **kwargs):
        raise TypeError("not serializable")

    monkeypatch.setattr(TicketContent, "model_dump_json", _explode)
    content = TicketContent(description="Printer on fire")

    assert ticket_content.serialize_ticket_content(content) == "Printer on fire"


def test_parse_round_trips_and_tolerates_plain_text():
    stored = serialize_ticket_content(build_ticket_content("desc", [{"id": 1, "body_text": "x"}]))

    assert parse_ticket_content(stored).conversations[0].body_text == "x"
    assert parse_ticket_content("just some text").description == "just some text"
    assert parse_ticket_content(None).conversations == []
