import pytest

from kubescore.domain import (
    Grade,
    ObjectMeta,
    ScoredObject,
    TestScore,
    TestScoreComment,
    TypeMeta,
    any_below_or_equal_to_grade,
)


def _object(namespace="", checks=None):
    return ScoredObject(
        type_meta=TypeMeta(api_version="v1", kind="Testing"),
        object_meta=ObjectMeta(name="foo" if namespace else "bar-no-namespace", namespace=namespace),
        checks=checks or [],
    )


def test_human_friendly_ref_with_namespace():
    assert _object("foofoo").human_friendly_ref() == "foo/foofoo v1/Testing"


def test_human_friendly_ref_without_namespace():
    assert _object().human_friendly_ref() == "bar-no-namespace v1/Testing"


def test_add_comment_appends_in_order():
    score = TestScore()
    score.add_comment("a", "summary", "description")
    score.add_comment("", "second", "")
    assert score.comments == [
        TestScoreComment(path="a", summary="summary", description="description"),
        TestScoreComment(path="", summary="second", description=""),
    ]


@pytest.mark.parametrize(
    "check_grade, threshold, expected",
    [
        (Grade.CRITICAL, Grade.CRITICAL, True),
        (Grade.CRITICAL, Grade.WARNING, True),
        (Grade.WARNING, Grade.CRITICAL, False),
        (Grade.WARNING, Grade.ALMOST_OK, True),
        (Grade.ALMOST_OK, Grade.WARNING, False),
        (Grade.ALMOST_OK, Grade.ALL_OK, True),
        (Grade.ALL_OK, Grade.ALMOST_OK, False),
    ],
)
def test_grade_ordering_drives_threshold(check_grade, threshold, expected):
    obj = _object(checks=[TestScore(grade=check_grade)])
    assert obj.any_below_or_equal_to_grade(threshold) is expected


def test_any_below_or_equal_respects_grade():
    obj = _object(checks=[TestScore(grade=Grade.WARNING), TestScore(grade=Grade.ALL_OK)])
    assert obj.any_below_or_equal_to_grade(Grade.WARNING) is True
    assert obj.any_below_or_equal_to_grade(Grade.CRITICAL) is False


def test_skipped_checks_are_ignored():
    obj = _object(checks=[TestScore(grade=Grade.CRITICAL, skipped=True)])
    assert obj.any_below_or_equal_to_grade(Grade.ALL_OK) is False


def test_scorecard_level_check():
    card = {
        "a": _object("foofoo", [TestScore(grade=Grade.ALL_OK)]),
        "b": _object(checks=[TestScore(grade=Grade.CRITICAL)]),
    }
    assert any_below_or_equal_to_grade(card, Grade.CRITICAL) is True
    del card["b"]
    assert any_below_or_equal_to_grade(card, Grade.WARNING) is False


def test_type_meta_round_trip():
    data = {"apiVersion": "apps/v1", "kind": "Deployment"}
    meta = TypeMeta.from_dict(data)
    assert meta == TypeMeta(api_version="apps/v1", kind="Deployment")
    assert meta.to_dict() == data


def test_object_meta_round_trip_keeps_labels():
    meta = ObjectMeta.from_dict(
        {"name": "foo", "namespace": "foofoo", "labels": {"app": "foo"}}
    )
    again = ObjectMeta.from_dict(meta.to_dict())
    assert again == meta
    assert again.labels == {"app": "foo"}


def test_object_meta_from_missing_data():
    assert ObjectMeta.from_dict(None) == ObjectMeta()