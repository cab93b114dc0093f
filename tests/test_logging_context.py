"""Tests for logging context propagation."""

from scan_scheduler.logging.context import (
    clear_log_context,
    get_log_context,
    log_context,
    pop_log_context,
    push_log_context,
)


def test_empty_context():
    """Test that context starts empty."""
    assert get_log_context() == {}


def test_push_and_pop():
    """Test that popping restores the state captured by the matching push."""
    tick_token = push_log_context(tick_id="t-1")
    schedule_token = push_log_context(schedule_id="sched_00000001")

    assert get_log_context() == {"tick_id": "t-1", "schedule_id": "sched_00000001"}

    pop_log_context(schedule_token)
    assert get_log_context() == {"tick_id": "t-1"}

    pop_log_context(tick_token)
    assert get_log_context() == {}


def test_push_overrides_existing_key():
    token1 = push_log_context(schedule_id="sched_aaaaaaaa")
    token2 = push_log_context(schedule_id="sched_bbbbbbbb")

    assert get_log_context() == {"schedule_id": "sched_bbbbbbbb"}

    pop_log_context(token2)
    assert get_log_context() == {"schedule_id": "sched_aaaaaaaa"}
    pop_log_context(token1)


def test_context_manager_nested():
    """Test nested scopes as used by a daemon tick."""
    with log_context(tick_id="t-1"):
        with log_context(schedule_id="sched_00000001", schedule_name="Nightly"):
            assert get_log_context() == {
                "tick_id": "t-1",
                "schedule_id": "sched_00000001",
                "schedule_name": "Nightly",
            }

        assert get_log_context() == {"tick_id": "t-1"}

    assert get_log_context() == {}


def test_context_manager_restores_on_exception():
    """Test that context is restored even when an exception escapes the scope."""
    try:
        with log_context(tick_id="t-1"):
            raise RuntimeError("executor crashed")
    except RuntimeError:
        pass

    assert get_log_context() == {}


def test_clear_context():
    push_log_context(tick_id="t-1", schedule_id="sched_00000001")

    clear_log_context()

    assert get_log_context() == {}


def test_get_returns_copy():
    """Test that mutating the returned dict leaves the active context alone."""
    with log_context(tick_id="t-1"):
        context = get_log_context()
        context["schedule_id"] = "modified"

        assert get_log_context() == {"tick_id": "t-1"}
