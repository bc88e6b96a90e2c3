"""Tests for candidate scoring."""

import math
from datetime import timedelta

import pytest

from ...models import UserProfile
from .conftest import NOW, make_post
from .scoring import (
    engagement_score,
    interest_score,
    recency_score,
    score_candidate,
    score_candidates,
)


class TestRecencyScore:
    def test_brand_new_post_scores_ten(self):
        assert recency_score(NOW, NOW) == pytest.approx(10.0)

    def test_decays_with_age(self):
        assert recency_score(NOW - timedelta(hours=24), NOW) == pytest.approx(10 / math.e)
        assert recency_score(NOW - timedelta(hours=48), NOW) < recency_score(NOW - timedelta(hours=24), NOW)

    def test_roughly_halves_every_17_hours(self):
        ratio = recency_score(NOW - timedelta(hours=17), NOW) / recency_score(NOW, NOW)
        assert ratio == pytest.approx(0.5, abs=0.02)

    def test_future_posts_are_clamped(self):
        assert recency_score(NOW + timedelta(hours=5), NOW) == pytest.approx(10.0)

    def test_never_negative(self):
        assert recency_score(NOW - timedelta(days=365), NOW) >= 0


class TestInterestScore:
    def test_normalizes_by_total_mass(self):
        interests = {"python": 3.0, "rust": 1.0}
        assert interest_score(["python"], interests) == pytest.approx(0.75 * 15)
        assert interest_score(["python", "rust"], interests) == pytest.approx(15)

    def test_zero_mass_is_skipped(self):
        assert interest_score(["python"], {}) == 0.0
        assert interest_score(["python"], {"python": 0.0}) == 0.0

    def test_unmatched_keywords_add_nothing(self):
        assert interest_score(["cooking"], {"python": 2.0}) == 0.0

    def test_repeated_keyword_counts_each_time(self):
        interests = {"python": 1.0, "rust": 1.0}
        assert interest_score(["python", "python"], interests) == pytest.approx(15)


class TestEngagementScore:
    def test_logarithmic(self):
        assert engagement_score(0, 0) == 0.0
        assert engagement_score(9, 0) == pytest.approx(math.log(10) * 2)
        assert engagement_score(0, 9) == pytest.approx(math.log(10) * 3)

    def test_monotonic_in_likes_and_comments(self):
        scores = [engagement_score(n, 3) for n in range(0, 50)]
        assert scores == sorted(scores)
        scores = [engagement_score(3, n) for n in range(0, 50)]
        assert scores == sorted(scores)


class TestScoreCandidate:
    def test_following_bonus_and_reason(self):
        post = make_post("p1", author_id="friend", age=timedelta(days=10))
        followed = score_candidate(post, UserProfile(following={"friend"}), NOW)
        stranger = score_candidate(post, UserProfile(), NOW)
        assert followed.score - stranger.score == pytest.approx(8.0)
        assert "following" in followed.reasons
        assert "following" not in stranger.reasons

    def test_quality_bonus_requires_image_and_long_description(self):
        long_text = "x" * 101
        with_both = make_post("p1", description=long_text, has_image=True)
        no_image = make_post("p2", description=long_text, has_image=False)
        short = make_post("p3", description="short", has_image=True)
        profile = UserProfile()
        base = score_candidate(no_image, profile, NOW).score
        assert score_candidate(with_both, profile, NOW).score == pytest.approx(base + 2)
        assert score_candidate(short, profile, NOW).score == pytest.approx(base)
        assert "quality" in score_candidate(with_both, profile, NOW).reasons

    def test_community_bonus(self):
        profile = UserProfile()
        plain = score_candidate(make_post("p1"), profile, NOW).score
        tribe = score_candidate(make_post("p1", community_id="t1"), profile, NOW).score
        assert tribe == pytest.approx(plain + 1)

    def test_recent_interaction_bonus(self):
        profile = UserProfile(recent_interactions={"p1": 2.5})
        with_bonus = score_candidate(make_post("p1"), profile, NOW)
        without = score_candidate(make_post("p1"), UserProfile(), NOW)
        assert with_bonus.score == pytest.approx(without.score + 5.0)
        assert "interacted" in with_bonus.reasons

    def test_no_nan_for_empty_profile(self):
        scored = score_candidate(make_post("p1", keywords=["a", "b"]), UserProfile(), NOW)
        assert not math.isnan(scored.score)

    def test_monotonic_in_like_count(self):
        profile = UserProfile(interests={"python": 1.0}, following={"author"})
        scores = [
            score_candidate(make_post("p", keywords=["python"], like_count=n, comment_count=2), profile, NOW).score
            for n in range(0, 30)
        ]
        assert scores == sorted(scores)

    def test_score_candidates_preserves_order(self):
        posts = [make_post("a"), make_post("b"), make_post("c")]
        scored = score_candidates(posts, UserProfile(), NOW)
        assert [s.candidate.id for s in scored] == ["a", "b", "c"]
