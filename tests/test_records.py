import dataclasses

import pytest

from mtproxxy.records import (
    FetchTask,
    ProxyRecord,
    build_connection_url,
    classify_server,
    compute_hash,
    format_hash,
)


def test_compute_hash_matches_reference_fnv1a():
    # Reference values computed independently of this code base
    assert format_hash(compute_hash("1.2.3.4", "443", "deadbeefdeadbeefdeadbeef")) == "aca948ce134622f4"
    assert (
        format_hash(compute_hash("proxy.example.com", "8080", "ee11223344556677889900aabbccddeeff"))
        == "b5c9f34d5f426e42"
    )


def test_hash_is_deterministic_and_field_sensitive():
    a = compute_hash("1.2.3.4", "443", "deadbeefdeadbeefdeadbeef")
    assert a == compute_hash("1.2.3.4", "443", "deadbeefdeadbeefdeadbeef")
    assert a != compute_hash("1.2.3.4", "444", "deadbeefdeadbeefdeadbeef")
    assert a != compute_hash("1.2.3.5", "443", "deadbeefdeadbeefdeadbeef")
    # Separator keeps "1.2.3.4" + "4" apart from "1.2.3.44" + ""
    assert compute_hash("1.2.3.4", "43", "x" * 16) != compute_hash("1.2.3.44", "3", "x" * 16)


def test_hash_only_covers_first_64_secret_chars():
    prefix = "ab" * 32
    assert compute_hash("host.example", "443", prefix + "00") == compute_hash("host.example", "443", prefix + "ff")
    assert compute_hash("host.example", "443", prefix[:-1] + "0") != compute_hash("host.example", "443", prefix)


def test_hash_does_not_fold_secret_case():
    assert compute_hash("1.2.3.4", "443", "DEADBEEFDEADBEEF") != compute_hash("1.2.3.4", "443", "deadbeefdeadbeef")


def test_format_hash_is_16_lowercase_hex_digits():
    assert format_hash(0) == "0" * 16
    assert format_hash(0xABC) == "0000000000000abc"


@pytest.mark.parametrize(
    "server,expected",
    [("1.2.3.4", "IPv4"), ("149.154.167.51", "IPv4"), ("proxy.example.com", "Domain"), ("a1.b2", "Domain")],
)
def test_classify_server(server, expected):
    assert classify_server(server) == expected


def test_build_record_fills_derived_fields():
    rec = ProxyRecord.build("1.2.3.4", "443", "deadbeefdeadbeefdeadbeef", "https://src.example/list.txt", now=1000.0)
    assert rec.connection_url == "tg://proxy?server=1.2.3.4&port=443&secret=deadbeefdeadbeefdeadbeef"
    assert rec.connection_url == build_connection_url(rec.server, rec.port, rec.secret)
    assert rec.type == "IPv4"
    assert rec.country == "UN"
    assert rec.discovered == rec.last_verified == 1000.0
    assert rec.active is True
    assert rec.verified is False
    assert rec.speed_score == 50
    assert rec.hash_value == compute_hash("1.2.3.4", "443", "deadbeefdeadbeefdeadbeef")


def test_record_is_immutable_and_bounded():
    rec = ProxyRecord.build("1.2.3.4", "443", "deadbeefdeadbeefdeadbeef", "src")
    with pytest.raises(dataclasses.FrozenInstanceError):
        rec.server = "5.6.7.8"  # type: ignore[misc]
    with pytest.raises(ValueError):
        ProxyRecord.build("1.2.3.4", "443", "short", "src")
    with pytest.raises(ValueError):
        ProxyRecord.build("h" * 256, "443", "deadbeefdeadbeefdeadbeef", "src")


def test_fetch_task_reserved_fields_default():
    task = FetchTask(url="https://example.com/a.txt")
    assert (task.retry_count, task.priority, task.use_proxy) == (0, 1, False)
