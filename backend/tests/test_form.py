"""Deterministic form generation: seeding, shuffling and snapshots."""
import hashlib

from portal.domain.assessment.models import Option, Question, TestVersion
from portal.domain.attempt.form import build_form, form_rng, mulberry32, seed_from_string, shuffle_in_place


def _version(n_questions=12, n_options=4):
    questions = tuple(
        Question(
            id=f"q{i}",
            prompt=f"Prompt {i}",
            options=tuple(Option(id=f"q{i}o{j}", text=f"Option {j}") for j in range(n_options)),
            correct_option_id=f"q{i}o0",
            points=1,
        )
        for i in range(n_questions)
    )
    return TestVersion(course_id="c1", test_id="t1", version=1, questions=questions)


def test_seed_is_little_endian_prefix_of_sha256():
    digest = hashlib.sha256(b"seed:t1:alice__1:1").digest()
    assert seed_from_string("seed:t1:alice__1:1") == int.from_bytes(digest[:4], "little")


def test_mulberry32_is_deterministic_and_in_unit_interval():
    a, b = mulberry32(12345), mulberry32(12345)
    draws = [a() for _ in range(1000)]
    assert draws == [b() for _ in range(1000)]
    assert all(0 <= x < 1 for x in draws)
    assert len(set(draws)) > 990


def test_shuffle_is_a_permutation():
    items = list(range(50))
    shuffle_in_place(items, form_rng("abc", "t1", "u__1", 1))
    assert sorted(items) == list(range(50))


def test_same_inputs_reproduce_the_form():
    version = _version()
    served_a, snap_a = build_form(version, "f00d", "alice__1", shuffle=True)
    served_b, snap_b = build_form(version, "f00d", "alice__1", shuffle=True)
    assert [q.to_dict() for q in served_a] == [q.to_dict() for q in served_b]
    assert snap_a == snap_b


def test_snapshot_matches_served_order_and_options():
    version = _version()
    served, snapshot = build_form(version, "beef", "bob__1", shuffle=True)
    assert [e.question_id for e in snapshot] == [q.id for q in served]
    for entry, question in zip(snapshot, served):
        assert list(entry.option_ids) == [o.id for o in question.options]
    assert sorted(e.question_id for e in snapshot) == sorted(q.id for q in version.questions)


def test_different_attempts_get_different_orders():
    version = _version()
    orders = {
        tuple(e.question_id for e in build_form(version, "seed", f"u__{n}", shuffle=True)[1])
        for n in range(1, 6)
    }
    assert len(orders) > 1


def test_no_shuffle_keeps_authoring_order():
    version = _version(n_questions=3, n_options=3)
    served, snapshot = build_form(version, "seed", "u__1", shuffle=False)
    assert [q.id for q in served] == ["q0", "q1", "q2"]
    assert snapshot[0].to_dict() == {"questionId": "q0", "optionIds": ["q0o0", "q0o1", "q0o2"]}


def test_served_questions_hide_the_answer_key():
    served, _ = build_form(_version(n_questions=2), "seed", "u__1", shuffle=True)
    for q in served:
        payload = q.to_dict()
        assert set(payload) == {"id", "prompt", "points", "options"}
        assert "correctOptionId" not in str(payload)
