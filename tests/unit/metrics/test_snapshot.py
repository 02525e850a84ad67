from metrics_bus.domain.models import Sample
from metrics_bus.metrics.snapshot import build_snapshot, composite_key, key_of


def test_composite_key_sorts_labels():
    assert composite_key("foo", {"b": "2", "a": "1"}) == 'foo{a="1",b="2"}'
    assert composite_key("foo", {}) == "foo{}"


def test_composite_key_quotes_values():
    assert composite_key("m", {"x": 'a"b'}) == 'm{x="a\\"b"}'


def test_same_label_set_in_any_order_has_one_key():
    a = Sample(name="m", labels={"x": "1", "y": "2"}, value=1)
    b = Sample(name="m", labels={"y": "2", "x": "1"}, value=2)
    assert key_of(a) == key_of(b)


def test_build_snapshot_last_write_wins():
    samples = [
        Sample(name="m", labels={"x": "1"}, value=1),
        Sample(name="other", value=9),
        Sample(name="m", labels={"x": "1"}, value=3),
    ]
    snapshot = build_snapshot(samples, 1000)
    assert snapshot.timestamp == 1000
    assert snapshot.entries == {'m{x="1"}': 3.0, "other{}": 9.0}
