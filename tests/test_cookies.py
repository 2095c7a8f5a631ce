from cookies import clear_cookie, parse_cookies, serialize_cookie


def test_parse_missing_header_is_empty():
    assert parse_cookies(None) == {}
    assert parse_cookies("") == {}


def test_parse_multiple_cookies():
    assert parse_cookies("sessionId=abc123; theme=dark") == {"sessionId": "abc123", "theme": "dark"}


def test_parse_splits_on_first_equals_and_skips_nameless_entries():
    cookies = parse_cookies("token=a=b=c; =orphan; ;flag")
    assert cookies == {"token": "a=b=c", "flag": ""}


def test_parse_url_decodes_values():
    assert parse_cookies("name=hello%20world%3B") == {"name": "hello world;"}


def test_round_trip_with_reserved_characters():
    value = "a;b=c d,e%f"
    header = serialize_cookie("sid", value)
    name_value = header.split(";")[0]
    assert parse_cookies(name_value) == {"sid": value}


def test_serialize_appends_attributes_in_fixed_order():
    header = serialize_cookie("sessionId", "abc", max_age=1_800_000, path="/",
                              domain="example.com", http_only=True, secure=True,
                              same_site="Strict")
    assert header == ("sessionId=abc; Max-Age=1800; Path=/; Domain=example.com; "
                      "HttpOnly; Secure; SameSite=Strict")


def test_serialize_omits_unset_attributes():
    assert serialize_cookie("a", "b", http_only=False, secure=False) == "a=b"


def test_max_age_is_floored_to_whole_seconds():
    assert "Max-Age=1;" in serialize_cookie("a", "b", max_age=1999, path="/")
    assert serialize_cookie("a", "b", max_age=999).endswith("Max-Age=0")


def test_clear_cookie_sets_empty_value_and_zero_max_age():
    header = clear_cookie("sessionId", path="/", http_only=True, same_site="Strict")
    assert header == "sessionId=; Max-Age=0; Path=/; HttpOnly; SameSite=Strict"
