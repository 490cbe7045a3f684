import pytest
from pydantic import ValidationError

from redditstats.schemas.post import Post, parse_listing


def test_parse_listing_reads_children() -> None:
    payload = {
        "kind": "Listing",
        "data": {
            "after": "t3_abc",
            "children": [
                {"kind": "t3", "data": {"title": "Go 1.23 released", "author": "gopher", "score": 420, "id": "x1"}},
                {"kind": "t3", "data": {"title": "Generics question", "author": "newbie", "score": 3}},
            ],
        },
    }

    posts = parse_listing(payload)
    assert posts == [
        Post(title="Go 1.23 released", author="gopher", score=420),
        Post(title="Generics question", author="newbie", score=3),
    ]


def test_parse_listing_fills_missing_fields() -> None:
    payload = {"data": {"children": [{"data": {"title": "No author", "score": "12"}}, {"data": {}}]}}

    posts = parse_listing(payload)
    assert posts[0] == Post(title="No author", author="", score=12)
    assert posts[1] == Post(title="", author="", score=0)


def test_parse_listing_skips_malformed_children() -> None:
    payload = {"data": {"children": ["junk", {"kind": "t3"}, {"data": {"title": "ok", "author": "a", "score": 1}}]}}
    assert [post.title for post in parse_listing(payload)] == ["ok"]


def test_parse_listing_handles_empty_payload() -> None:
    assert parse_listing(None) == []
    assert parse_listing({}) == []


def test_post_is_immutable() -> None:
    post = Post(title="t", author="a", score=1)
    with pytest.raises(ValidationError):
        post.score = 2  # type: ignore[misc]
