"""Defensive parsing of model output."""

from receptionist.reply_parser import (
    CANNED_APOLOGY,
    FunctionCallReply,
    PlainText,
    parse_model_reply,
)


def test_plain_text_passes_through():
    assert parse_model_reply("  Breakfast is served from 7am.  ") == PlainText("Breakfast is served from 7am.")


def test_bare_envelope():
    raw = '{"functionCall": {"name": "cancelBooking", "parameters": {"bookingId": "b1"}}, "userResponse": "Done."}'
    assert parse_model_reply(raw) == FunctionCallReply("cancelBooking", {"bookingId": "b1"}, "Done.")


def test_envelope_inside_prose_and_fences():
    raw = (
        "Sure! Here you go:\n```json\n"
        '{"functionCall": {"name": "getRoomAvailability", "parameters": {"roomType": "suite"}},'
        ' "userResponse": "Let me check."}\n```\nAnything else?'
    )
    reply = parse_model_reply(raw)
    assert isinstance(reply, FunctionCallReply)
    assert reply.name == "getRoomAvailability"
    assert reply.parameters == {"roomType": "suite"}


def test_fence_characters_inside_values_are_kept():
    raw = '```json\n{"userResponse": "Type ```help``` for options."}\n```'
    assert parse_model_reply(raw) == PlainText("Type ```help``` for options.")


def test_user_response_only():
    assert parse_model_reply('{"userResponse": "Hello there!"}') == PlainText("Hello there!")


def test_missing_parameters_become_empty_dict():
    reply = parse_model_reply('{"functionCall": {"name": "getUserBookings"}}')
    assert reply == FunctionCallReply("getUserBookings", {}, "")


def test_truncated_json_is_replaced_by_apology():
    raw = '{"functionCall": {"name": "bookRoom", "parameters": {"roomId": "room-1'
    assert parse_model_reply(raw) == PlainText(CANNED_APOLOGY)


def test_malformed_json_with_braces_is_replaced_by_apology():
    raw = '{"userResponse": "Sure", "functionCall": {name: bookRoom}}'
    assert parse_model_reply(raw) == PlainText(CANNED_APOLOGY)


def test_braces_in_ordinary_text_are_kept():
    raw = "Our rates are {standard: $100} per night."
    assert parse_model_reply(raw) == PlainText(raw)


def test_empty_output():
    assert parse_model_reply("") == PlainText("")
    assert parse_model_reply(None) == PlainText("")
