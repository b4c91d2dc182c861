"""Unit tests for the product status transition rules."""

import itertools

import pytest

from src.devdaily.core.exceptions import IllegalTransitionError
from src.devdaily.entities.catalog.product import (
    TRANSITIONS,
    ProductStatus,
    can_transition,
    ensure_transition,
)

S = ProductStatus

LEGAL = {
    (S.DRAFT, S.PENDING_VERIFICATION),
    (S.PENDING_VERIFICATION, S.VERIFIED),
    (S.PENDING_VERIFICATION, S.DRAFT),
    (S.VERIFIED, S.PUBLISHED),
    (S.VERIFIED, S.PENDING_VERIFICATION),
    (S.PUBLISHED, S.VERIFIED),
    (S.ARCHIVED, S.DRAFT),
    (S.ARCHIVED, S.PUBLISHED),
} | {(source, S.ARCHIVED) for source in S}


class TestTransitionTable:
    """The static table and the hard-coded archive/restore edges."""

    @pytest.mark.parametrize("source,target", list(itertools.product(S, S)))
    def test_every_pair(self, source, target):
        """Only the listed edges are legal; everything else raises."""
        expected = (source, target) in LEGAL
        assert can_transition(source, target) is expected
        assert source.can_transition_to(target) is expected

        if expected:
            ensure_transition(source, target)
        else:
            with pytest.raises(IllegalTransitionError) as exc_info:
                ensure_transition(source, target)
            assert exc_info.value.source is source
            assert exc_info.value.target is target

    def test_table_is_static_data(self):
        assert set(TRANSITIONS) == set(S)
        assert TRANSITIONS[S.DRAFT] == frozenset({S.PENDING_VERIFICATION})
        assert TRANSITIONS[S.ARCHIVED] == frozenset({S.DRAFT})

    def test_archive_reachable_from_every_status(self):
        for source in S:
            assert can_transition(source, S.ARCHIVED)

    def test_same_status_only_legal_for_archived(self):
        for status in S:
            assert can_transition(status, status) is (status is S.ARCHIVED)

    def test_draft_cannot_jump_to_published(self):
        with pytest.raises(IllegalTransitionError, match="from Draft to Published"):
            ensure_transition(S.DRAFT, S.PUBLISHED)


class TestProductStatusHelpers:
    def test_values(self):
        assert S.values() == ["draft", "pending_verification", "verified", "published", "archived"]

    def test_labels(self):
        assert S.PENDING_VERIFICATION.label == "Pending Verification"
        assert S.ARCHIVED.label == "Archived"

    def test_allowed_transitions(self):
        assert S.DRAFT.allowed_transitions() == [S.PENDING_VERIFICATION, S.ARCHIVED]
        assert S.VERIFIED.allowed_transitions() == [
            S.PENDING_VERIFICATION,
            S.PUBLISHED,
            S.ARCHIVED,
        ]

    def test_only_published_is_live(self):
        assert [status for status in S if status.is_live] == [S.PUBLISHED]
        assert S.active_statuses() == [S.PUBLISHED]

    def test_status_groups(self):
        assert S.pending_action_statuses() == [S.PENDING_VERIFICATION]
        assert S.editable_statuses() == [S.DRAFT, S.PENDING_VERIFICATION]

    def test_string_values_round_trip(self):
        assert S("published") is S.PUBLISHED
        assert S.PUBLISHED == "published"
