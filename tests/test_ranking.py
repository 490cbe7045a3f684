import random

from redditstats.schemas.post import Post
from redditstats.services.ranking import add_to_ranking, ordered_tally, rank_posts, tally_author


def _post(title: str, score: int, author: str = "user") -> Post:
    return Post(title=title, author=author, score=score)


def test_add_to_ranking_keeps_descending_order() -> None:
    ranking: list[Post] = []
    ranking = add_to_ranking(ranking, _post("Post A", 100))
    ranking = add_to_ranking(ranking, _post("Post B", 50))
    ranking = add_to_ranking(ranking, _post("Post C", 75))

    assert [post.title for post in ranking] == ["Post A", "Post C", "Post B"]


def test_add_to_ranking_breaks_ties_by_arrival_order() -> None:
    ranking: list[Post] = []
    for title in ("first", "second", "third"):
        ranking = add_to_ranking(ranking, _post(title, 10))

    assert [post.title for post in ranking] == ["first", "second", "third"]


def test_exactly_limit_increasing_scores_are_all_kept_reversed() -> None:
    ranking: list[Post] = []
    for score in range(1, 11):
        ranking = add_to_ranking(ranking, _post(f"p{score}", score), limit=10)

    assert [post.score for post in ranking] == list(range(10, 0, -1))


def test_one_over_limit_drops_lowest_score() -> None:
    ranking: list[Post] = []
    for score in range(1, 12):
        ranking = add_to_ranking(ranking, _post(f"p{score}", score), limit=10)

    assert [post.score for post in ranking] == [11, 10, 9, 8, 7, 6, 5, 4, 3, 2]


def test_rank_posts_is_a_no_op_on_ranked_input() -> None:
    rng = random.Random(7)
    ranking: list[Post] = []
    for idx in range(40):
        ranking = add_to_ranking(ranking, _post(f"p{idx}", rng.randint(0, 20)), limit=10)

    assert rank_posts(ranking, limit=10) == ranking


def test_random_streams_match_sorted_reference() -> None:
    rng = random.Random(1234)
    for limit in (1, 3, 10):
        seen: list[Post] = []
        ranking: list[Post] = []
        for idx in range(rng.randint(0, 30)):
            post = _post(f"p{idx}", rng.randint(-5, 50))
            seen.append(post)
            ranking = add_to_ranking(ranking, post, limit=limit)

            assert len(ranking) == min(limit, len(seen))
            assert all(left.score >= right.score for left, right in zip(ranking, ranking[1:]))
            assert ranking == sorted(seen, key=lambda item: item.score, reverse=True)[:limit]


def test_tally_author_counts_each_post() -> None:
    tally: dict[str, int] = {}
    assert tally_author(tally, "user1") == 1
    assert tally_author(tally, "user1") == 2
    assert tally_author(tally, "user2") == 1
    assert tally == {"user1": 2, "user2": 1}


def test_ordered_tally_sorts_by_count_then_author() -> None:
    tally = {"carol": 1, "alice": 3, "bob": 1}
    assert ordered_tally(tally) == [("alice", 3), ("bob", 1), ("carol", 1)]
