"""
Curriculum Matching Tests
"""

import copy

import pytest

from openlearn_core.catalog.compiler import compile_catalog
from openlearn_core.config import DEFAULT_FALLBACK_SOURCES, FallbackSource
from openlearn_core.core.errors import ValidationInputError
from openlearn_core.matching.engine import (
    STATUS_ALTERNATIVE,
    STATUS_AVAILABLE,
    CatalogMatcher,
    build_fallback_links,
    encode_query,
    validate_curriculum,
)


SNAPSHOT = compile_catalog([
    {"id": "x1", "title": "Array Implementation in C"},
    {"id": "x2", "title": "Go"},
    {"id": "x3", "title": "Introduction to Machine Learning"},
    {"id": "x4", "title": "Machine Learning"},
    {"id": "x5", "title": ""},
])


def make_candidate(*titles, **criteria_by_title):
    return {
        "curriculum": {
            "foundation": {
                "courses": [
                    {"title": title, "matching_criteria": dict(criteria_by_title.get(title, {}))}
                    for title in titles
                ],
            },
        },
    }


def courses_of(result, tier="foundation"):
    return result["curriculum"][tier]["courses"]


class TestMatcher:

    def test_suggested_id_wins_over_title(self):
        matcher = CatalogMatcher(SNAPSHOT.all_contents)

        assert matcher.find("Totally Different", "x4").id == "x4"

    def test_unknown_suggested_id_falls_back_to_title(self):
        matcher = CatalogMatcher(SNAPSHOT.all_contents)

        assert matcher.find("array implementation in c", "nope").id == "x1"

    def test_short_titles_never_match_by_containment(self):
        matcher = CatalogMatcher(SNAPSHOT.all_contents)

        # candidate is short: no containment even though "go" is in catalog titles
        assert matcher.find("Go Lang") is None
        # long candidate containing a short catalog title still uses containment
        assert matcher.find("Go Language Deep Dive").id == "x2"
        # exact equality ignores the length gate
        assert matcher.find("GO").id == "x2"

    def test_containment_first_match_in_catalog_order(self):
        matcher = CatalogMatcher(SNAPSHOT.all_contents)

        assert matcher.find("Machine Learning Fundamentals Course").id == "x4"
        assert matcher.find("Intro to Machine Learning").id == "x4"
        assert matcher.find("introduction to machine learning with python").id == "x3"

    def test_empty_catalog_titles_are_not_containment_candidates(self):
        matcher = CatalogMatcher(compile_catalog([{"id": "blank", "title": ""}]).all_contents)

        assert matcher.find("Something Quite Long") is None


class TestFallbackLinks:

    def test_encode_query_matches_uri_component(self):
        assert encode_query("C++ & Rust (basics)") == "C%2B%2B%20%26%20Rust%20(basics)"

    def test_one_link_per_source_in_order(self):
        links = build_fallback_links("Quantum Cryptography Basics", DEFAULT_FALLBACK_SOURCES)

        assert [link["platform"] for link in links] == [s.platform for s in DEFAULT_FALLBACK_SOURCES]
        for link in links:
            assert "Quantum%20Cryptography%20Basics" in link["url"]
            assert link["icon"]

    def test_query_suffix_is_encoded(self):
        source = FallbackSource(platform="Search", url_template="https://s.test/?q={query}", icon="s")

        links = build_fallback_links("Graphs", [source.model_copy(update={"query_suffix": " tutorial"})])

        assert links[0]["url"] == "https://s.test/?q=Graphs%20tutorial"


class TestValidateCurriculum:

    def test_exact_title_resolves(self):
        result = validate_curriculum(make_candidate("array implementation in c"), SNAPSHOT)
        course = courses_of(result)[0]

        assert course["title"] == "Array Implementation in C"
        criteria = course["matching_criteria"]
        assert criteria["validation_status"] == STATUS_AVAILABLE
        assert criteria["matched_content_id"] == "x1"
        assert criteria["matched_content_title"] == "Array Implementation in C"
        assert criteria["content_url"] == "/notes/x1"

    def test_unresolved_gets_external_links(self):
        result = validate_curriculum(
            make_candidate("Quantum Cryptography Basics"),
            SNAPSHOT,
            platform_name="OpenLearn Hub",
        )
        course = courses_of(result)[0]
        criteria = course["matching_criteria"]

        assert course["title"] == "Quantum Cryptography Basics"
        assert criteria["validation_status"] == STATUS_ALTERNATIVE
        assert criteria["matched_content_id"] is None
        assert criteria["note"] == "Not available on OpenLearn Hub - External resources suggested"
        assert len(criteria["external_links"]) == len(DEFAULT_FALLBACK_SOURCES)
        assert all("Quantum%20Cryptography%20Basics" in link["url"] for link in criteria["external_links"])
        assert "content_url" not in criteria

    def test_suggested_id_from_generator_is_honored(self):
        candidate = make_candidate("Anything", Anything={"matched_content_id": "x3", "priority": "high"})

        criteria = courses_of(validate_curriculum(candidate, SNAPSHOT))[0]["matching_criteria"]

        assert criteria["matched_content_id"] == "x3"
        assert criteria["priority"] == "high"

    def test_stale_suggested_id_is_cleared_on_miss(self):
        candidate = make_candidate("Quantum Cryptography Basics", **{
            "Quantum Cryptography Basics": {"matched_content_id": "gone", "content_url": "/notes/gone"},
        })

        criteria = courses_of(validate_curriculum(candidate, SNAPSHOT))[0]["matching_criteria"]

        assert criteria["matched_content_id"] is None
        assert "content_url" not in criteria

    def test_order_and_unrelated_fields_are_preserved(self):
        candidate = {
            "title": "My Path",
            "curriculum": {
                "foundation": {
                    "description": "basics",
                    "courses": [
                        {"title": "Quantum Cryptography Basics", "duration": "2w"},
                        {"title": "Go", "duration": "1w"},
                    ],
                },
                "advanced": {"courses": [{"title": "Machine Learning"}]},
                "notes": "not a tier",
            },
        }

        result = validate_curriculum(candidate, SNAPSHOT)

        assert result["title"] == "My Path"
        assert result["curriculum"]["notes"] == "not a tier"
        assert result["curriculum"]["foundation"]["description"] == "basics"
        foundation = courses_of(result)
        assert [c["duration"] for c in foundation] == ["2w", "1w"]
        assert [c["matching_criteria"]["validation_status"] for c in foundation] == [
            STATUS_ALTERNATIVE,
            STATUS_AVAILABLE,
        ]
        assert courses_of(result, "advanced")[0]["matching_criteria"]["matched_content_id"] == "x4"

    def test_input_is_not_mutated(self):
        candidate = make_candidate("Go", "Quantum Cryptography Basics")
        before = copy.deepcopy(candidate)

        validate_curriculum(candidate, SNAPSHOT)

        assert candidate == before

    def test_revalidation_is_stable(self):
        once = validate_curriculum(make_candidate("Go", "Quantum Cryptography Basics"), SNAPSHOT)
        twice = validate_curriculum(once, SNAPSHOT)

        assert twice == once

    def test_empty_catalog_marks_everything_alternative(self):
        result = validate_curriculum(make_candidate("Go", "Array Implementation in C"), compile_catalog([]))

        assert {c["matching_criteria"]["validation_status"] for c in courses_of(result)} == {STATUS_ALTERNATIVE}

    def test_explicit_tiers_limit_processing(self):
        candidate = {
            "curriculum": {
                "core": {"courses": [{"title": "Go"}]},
                "extra": {"courses": [{"title": "Go"}]},
            },
        }

        result = validate_curriculum(candidate, SNAPSHOT, tiers=["extra", "missing"])

        assert "matching_criteria" not in courses_of(result, "core")[0]
        assert courses_of(result, "extra")[0]["matching_criteria"]["matched_content_id"] == "x2"

    def test_custom_content_url_template(self):
        result = validate_curriculum(make_candidate("Go"), SNAPSHOT, content_url_template="https://hub.test/c/{id}")

        assert courses_of(result)[0]["matching_criteria"]["content_url"] == "https://hub.test/c/x2"

    @pytest.mark.parametrize(
        "candidate",
        [
            None,
            [],
            {},
            {"curriculum": "nope"},
            {"curriculum": {"foundation": {"courses": ["not a course"]}}},
            {"curriculum": {"foundation": {"courses": [{"duration": "1w"}]}}},
            {"curriculum": {"foundation": {"courses": [{"title": "Go", "matching_criteria": "bad"}]}}},
        ],
    )
    def test_malformed_candidates_raise(self, candidate):
        with pytest.raises(ValidationInputError):
            validate_curriculum(candidate, SNAPSHOT)

    def test_malformed_course_fails_before_any_work(self):
        candidate = {
            "curriculum": {
                "a": {"courses": [{"title": "Go"}]},
                "b": {"courses": [{"no_title": True}]},
            },
        }
        before = copy.deepcopy(candidate)

        with pytest.raises(ValidationInputError):
            validate_curriculum(candidate, SNAPSHOT)

        assert candidate == before

    def test_named_tier_without_courses_list_raises(self):
        with pytest.raises(ValidationInputError):
            validate_curriculum({"curriculum": {"core": {"courses": None}}}, SNAPSHOT, tiers=["core"])
