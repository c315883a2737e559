"""Tests for shared selection validation module."""

from processes.optimizer import OptimizeResult, Question, optimize_questions
from validators import InvalidReason, Rules, validate_selection, validate_selection_simple


def sample_pool() -> list[Question]:
    """Build a sample candidate pool for testing."""
    return [
        Question(id="q1", time_required=10, score=20),
        Question(id="q2", time_required=20, score=30),
        Question(id="q3", time_required=30, score=50),
        Question(id="q4", time_required=5, score=5),
    ]


def make_result(selected: list[Question], **overrides) -> OptimizeResult:
    fields = {
        "selected_question_ids": [q.id for q in selected],
        "selected_questions": selected,
        "total_score": sum(q.score for q in selected),
        "total_time_used": sum(q.time_required for q in selected),
    }
    fields.update(overrides)
    return OptimizeResult(**fields)


class TestValidSelection:
    """Test cases for valid selections."""

    def test_optimizer_output_passes(self):
        pool = sample_pool()
        result = optimize_questions(pool, 50)

        check = validate_selection(result, pool, Rules(total_time_limit=50))

        assert check.valid
        assert check.reasons == []
        assert check.total_score == 80
        assert check.total_time_used == 50

    def test_empty_selection_passes(self):
        check = validate_selection(OptimizeResult.empty(), sample_pool(), Rules(total_time_limit=0))

        assert check.valid
        assert check.total_time_used == 0


class TestTimeLimitValidation:
    def test_time_limit_exceeded_fails(self):
        pool = sample_pool()
        result = make_result([pool[1], pool[2]])  # 50 minutes

        check = validate_selection(result, pool, Rules(total_time_limit=40))

        assert not check.valid
        assert InvalidReason.TIME_LIMIT_EXCEEDED in check.reasons

    def test_negative_limit_behaves_like_zero(self):
        pool = sample_pool()

        assert not validate_selection_simple(make_result([pool[3]]), pool, -5)
        assert validate_selection_simple(OptimizeResult.empty(), pool, -5)


class TestMembershipAndOrder:
    def test_unknown_question_fails(self):
        pool = sample_pool()
        stranger = Question(id="zz", time_required=1, score=1)

        check = validate_selection(make_result([stranger]), pool, Rules(total_time_limit=50))

        assert not check.valid
        assert InvalidReason.UNKNOWN_QUESTION in check.reasons

    def test_out_of_order_selection_fails(self):
        pool = sample_pool()

        check = validate_selection(make_result([pool[2], pool[0]]), pool, Rules(total_time_limit=50))

        assert not check.valid
        assert InvalidReason.ORDER_VIOLATION in check.reasons

    def test_order_check_can_be_disabled(self):
        pool = sample_pool()

        check = validate_selection(
            make_result([pool[2], pool[0]]), pool, Rules(total_time_limit=50, check_order=False)
        )

        assert check.valid

    def test_repeated_record_needs_repeated_pool_entry(self):
        pool = sample_pool()

        check = validate_selection(make_result([pool[0], pool[0]]), pool, Rules(total_time_limit=50))

        assert InvalidReason.ORDER_VIOLATION in check.reasons

    def test_duplicates_in_pool_are_matched_in_order(self):
        dup = Question(id="d", time_required=1, score=1)
        pool = [dup, Question(id="x", time_required=1, score=2), dup]

        check = validate_selection(make_result([dup, dup]), pool, Rules(total_time_limit=3))

        assert check.valid


class TestReportedFields:
    def test_id_mismatch_fails(self):
        pool = sample_pool()
        result = make_result([pool[0]], selected_question_ids=["q2"])

        check = validate_selection(result, pool, Rules(total_time_limit=50))

        assert InvalidReason.ID_MISMATCH in check.reasons

    def test_score_mismatch_fails(self):
        pool = sample_pool()
        result = make_result([pool[0]], total_score=999)

        check = validate_selection(result, pool, Rules(total_time_limit=50))

        assert check.reasons == [InvalidReason.SCORE_MISMATCH]
        assert check.total_score == 20

    def test_time_mismatch_fails(self):
        pool = sample_pool()
        result = make_result([pool[0]], total_time_used=1)

        check = validate_selection(result, pool, Rules(total_time_limit=50))

        assert check.reasons == [InvalidReason.TIME_MISMATCH]

    def test_totals_check_can_be_disabled(self):
        pool = sample_pool()
        result = make_result([pool[0]], total_score=999, total_time_used=1)

        check = validate_selection(result, pool, Rules(total_time_limit=50, check_totals=False))

        assert check.valid
