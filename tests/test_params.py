from reconurl.core.params import Params


def test_decode_keeps_raw_values_and_duplicates():
    p = Params().decode("a=1&&b&c=x=y&a=%0a")
    assert p.items() == [("a", "1"), ("b", ""), ("c", "x=y"), ("a", "%0a")]
    assert p.getall("a") == ["1", "%0a"]
    assert p.get("a") == "1"
    assert len(p) == 3


def test_encode_is_minimal_and_ordered():
    p = Params().decode("z=1&a=2&z=3")
    assert p.encode() == "z=1&a=2&z=3"

    p = Params()
    p.add("q", "a b&c#d")
    p.add("payload", "%0a<script>")
    p.add("k=v", "1")
    p.add("flag", "")
    p.add("name", "é")
    assert p.encode() == "q=a%20b%26c%23d&payload=%0a<script>&k%3Dv=1&flag&name=%C3%A9"


def test_merge_appends_and_returns_self():
    p1 = Params().decode("a=1&b=2")
    p2 = Params().decode("a=3&c=4")
    out = p1.merge(p2)
    assert out is p1
    assert p1.to_dict() == {"a": ["1", "3"], "b": ["2"], "c": ["4"]}
    assert p1.encode() == "a=1&b=2&a=3&c=4"
    assert p2.to_dict() == {"a": ["3"], "c": ["4"]}


def test_copy_is_independent():
    p = Params().decode("a=1")
    c = p.copy()
    c.add("a", "2")
    c.set("b", "x")
    assert p.getall("a") == ["1"]
    assert "b" not in p
    assert c == Params([("a", "1"), ("a", "2"), ("b", "x")])


def test_set_delete_and_truthiness():
    p = Params()
    assert not p
    p.add("a", "1", "2")
    p.set("a", "3")
    assert p.getall("a") == ["3"]
    assert p.has("a")
    p.delete("a")
    assert not p.has("a")
    assert p.encode() == ""
    assert list(Params().decode("x=1&y=2&x=3")) == ["x", "y"]
