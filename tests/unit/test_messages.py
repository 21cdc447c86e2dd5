import json

from pydantic import TypeAdapter

from src.touch_edge.messages import (
    CandleClosedMessage,
    CandlePayload,
    OutboundMessage,
    RequestHistoryMessage,
    TickMessage,
    TickPayload,
    UpdateConfigMessage,
    encode,
    parse_inbound,
)


def test_parse_inbound_update_config_keeps_raw_fields() -> None:
    message = parse_inbound('{"type":"update_config","barrier":"3.5","payoutROI":95,"direction":"up"}')

    assert isinstance(message, UpdateConfigMessage)
    assert message.barrier == "3.5"
    assert message.payout_pct == 95
    assert message.direction == "up"


def test_parse_inbound_accepts_field_name_for_payout() -> None:
    message = parse_inbound({"type": "update_config", "payout_pct": 80})

    assert isinstance(message, UpdateConfigMessage)
    assert message.payout_pct == 80


def test_parse_inbound_request_history() -> None:
    assert isinstance(parse_inbound(b'{"type":"request_history"}'), RequestHistoryMessage)


def test_parse_inbound_rejects_garbage() -> None:
    assert parse_inbound("not json") is None
    assert parse_inbound("[1, 2, 3]") is None
    assert parse_inbound('{"type":"place_order"}') is None
    assert parse_inbound('{"barrier": 2}') is None


def test_outbound_round_trip_resolves_variant() -> None:
    closed = CandleClosedMessage(
        timeframe="5s",
        data=CandlePayload(time=10000, open=1.0, high=2.0, low=0.5, close=1.5),
    )

    decoded = TypeAdapter(OutboundMessage).validate_json(encode(closed))

    assert isinstance(decoded, CandleClosedMessage)
    assert decoded == closed


def test_tick_message_wire_shape() -> None:
    payload = json.loads(encode(TickMessage(data=TickPayload(time=10001, value=100.5))))

    assert payload == {"type": "tick", "data": {"time": 10001, "value": 100.5}}
