from wiki_monitor.utils import (
    InFlightGuard,
    encode_page_name,
    parse_bool,
    parse_delay_setting,
    parse_interval_setting,
    parse_timestamp,
)


def test_parse_delay_setting_ms_backwards_compatibility() -> None:
    assert parse_delay_setting("250", 0.0) == 0.25


def test_parse_delay_setting_seconds_float() -> None:
    assert parse_delay_setting("1.50", 0.0) == 1.5


def test_parse_delay_setting_invalid_returns_default() -> None:
    assert parse_delay_setting("not-a-number", 2.0) == 2.0


def test_parse_interval_setting_treats_numbers_as_milliseconds() -> None:
    assert parse_interval_setting(500) == 0.5
    assert parse_interval_setting(2000) == 2.0
    assert parse_interval_setting("1.5") == 1.5
    assert parse_interval_setting(None) == 0.5
    assert parse_interval_setting(0, default=3.0) == 3.0


def test_parse_bool_supports_truthy_and_falsy() -> None:
    assert parse_bool("on") is True
    assert parse_bool("NO") is False
    assert parse_bool(True) is True
    assert parse_bool(None, default=True) is True
    assert parse_bool("unexpected", default=False) is False


def test_parse_timestamp_accepts_zulu_suffix() -> None:
    parsed = parse_timestamp("2024-01-02T03:04:05Z")
    assert parsed is not None
    assert parsed.tzinfo is not None
    assert parsed.hour == 3
    assert parse_timestamp("garbage") is None
    assert parse_timestamp(None) is None


def test_encode_page_name_keeps_namespace_separator() -> None:
    assert encode_page_name("User talk:Some One") == "User_talk:Some_One"
    assert encode_page_name("Message Wall:Foo/@comment-1") == "Message_Wall:Foo/@comment-1"
    assert encode_page_name("A&B?") == "A%26B%3F"


def test_in_flight_guard_rejects_second_claim() -> None:
    guard = InFlightGuard()

    assert guard.try_acquire("wiki", "recentchanges") is True
    assert guard.try_acquire("wiki", "recentchanges") is False
    assert guard.try_acquire("wiki", "logevents") is True
    assert guard.is_busy("wiki", "recentchanges") is True

    guard.release("wiki", "recentchanges")
    assert guard.is_busy("wiki", "recentchanges") is False
    assert guard.try_acquire("wiki", "recentchanges") is True
