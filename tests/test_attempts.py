from __future__ import annotations

import pytest

from bridge.attempts import AttemptTracker, AuthStage


def test_record_attempt_counts_per_identifier():
    tracker = AttemptTracker()
    assert tracker.record_attempt("111", AuthStage.IDENTIFIER) == 1
    assert tracker.record_attempt("111", AuthStage.IDENTIFIER) == 2
    assert tracker.record_attempt("222", AuthStage.IDENTIFIER) == 1


def test_stages_do_not_share_a_budget():
    tracker = AttemptTracker()
    tracker.record_attempt("111", AuthStage.IDENTIFIER)
    tracker.record_attempt("111", AuthStage.IDENTIFIER)

    assert tracker.record_attempt("111", AuthStage.CREDENTIAL) == 1
    assert tracker.count("111", AuthStage.IDENTIFIER) == 2


def test_reset_zeroes_the_counter():
    tracker = AttemptTracker()
    tracker.record_attempt("111", AuthStage.CREDENTIAL)
    tracker.record_attempt("111", AuthStage.CREDENTIAL)

    tracker.reset("111", AuthStage.CREDENTIAL)

    assert tracker.count("111", AuthStage.CREDENTIAL) == 0
    assert tracker.record_attempt("111", AuthStage.CREDENTIAL) == 1


def test_lockout_threshold_defaults_to_three():
    tracker = AttemptTracker()
    assert not tracker.is_locked_out(2)
    assert tracker.is_locked_out(3)
    assert tracker.is_locked_out(4)


def test_max_entries_evicts_least_recently_touched():
    tracker = AttemptTracker(max_entries=2)
    tracker.record_attempt("a", AuthStage.IDENTIFIER)
    tracker.record_attempt("b", AuthStage.IDENTIFIER)
    tracker.record_attempt("a", AuthStage.IDENTIFIER)
    tracker.record_attempt("c", AuthStage.IDENTIFIER)

    assert len(tracker) == 2
    assert tracker.count("b", AuthStage.IDENTIFIER) == 0
    assert tracker.count("a", AuthStage.IDENTIFIER) == 2


def test_threshold_must_be_positive():
    with pytest.raises(ValueError):
        AttemptTracker(0)
