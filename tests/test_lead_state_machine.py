"""
Tests for the Lead State Machine
"""

import pytest

from siteaudit.leads import (
    TERMINAL_STATUSES,
    LeadAction,
    LeadStatus,
    is_terminal,
    next_status,
    reachable_from,
    sources_for,
)


class TestTransitions:
    """Test legal and illegal transitions."""

    @pytest.mark.parametrize("current,action,expected", [
        (LeadStatus.NEW, LeadAction.EMAIL_SENT, LeadStatus.CONTACTED),
        (LeadStatus.NEW, LeadAction.LINK_CLICKED, LeadStatus.INTERESTED),
        (LeadStatus.CONTACTED, LeadAction.LINK_CLICKED, LeadStatus.INTERESTED),
        (LeadStatus.CONTACTED, LeadAction.TRACKED_CONVERSION, LeadStatus.CONVERTED),
        (LeadStatus.INTERESTED, LeadAction.TRACKED_CONVERSION, LeadStatus.CONVERTED),
        (LeadStatus.NEW, LeadAction.ADMIN_CONVERT, LeadStatus.CONVERTED),
        (LeadStatus.INTERESTED, LeadAction.REJECT, LeadStatus.REJECTED),
    ])
    def test_legal(self, current, action, expected):
        assert next_status(current, action) == expected

    def test_click_never_regresses_interested(self):
        assert next_status(LeadStatus.INTERESTED, LeadAction.LINK_CLICKED) is None

    def test_email_sent_only_from_new(self):
        assert next_status(LeadStatus.CONTACTED, LeadAction.EMAIL_SENT) is None
        assert next_status(LeadStatus.INTERESTED, LeadAction.EMAIL_SENT) is None

    def test_tracked_conversion_needs_contact(self):
        assert next_status(LeadStatus.NEW, LeadAction.TRACKED_CONVERSION) is None

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    @pytest.mark.parametrize("action", list(LeadAction))
    def test_terminal_statuses_absorb_every_action(self, terminal, action):
        """Replayed events on converted/rejected leads are no-ops, not errors."""
        assert next_status(terminal, action) is None

    def test_nothing_targets_new(self):
        for status in LeadStatus:
            assert LeadStatus.NEW not in reachable_from(status, include_admin=True)


class TestReachability:
    """Test one-step reachability."""

    def test_from_new(self):
        assert reachable_from(LeadStatus.NEW) == {
            LeadStatus.CONTACTED, LeadStatus.INTERESTED, LeadStatus.REJECTED,
        }

    def test_admin_convert_included_on_request(self):
        assert LeadStatus.CONVERTED in reachable_from(LeadStatus.NEW, include_admin=True)

    def test_terminal(self):
        assert is_terminal(LeadStatus.CONVERTED)
        assert is_terminal(LeadStatus.REJECTED)
        assert not is_terminal(LeadStatus.INTERESTED)
        assert reachable_from(LeadStatus.REJECTED, include_admin=True) == set()

    def test_sources_for(self):
        assert sources_for(LeadAction.EMAIL_SENT) == frozenset({LeadStatus.NEW})
        assert LeadStatus.CONVERTED not in sources_for(LeadAction.REJECT)
