"""Product status and its transition rules.

The workflow is a two-level review: one admin enters the product and asks
for verification, a second admin verifies it, then it can be published.
"""

import enum
from collections.abc import Mapping

from src.devdaily.core.exceptions import IllegalTransitionError


class ProductStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    PUBLISHED = "published"
    ARCHIVED = "archived"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def is_live(self) -> bool:
        """Only published products are visible on the storefront."""
        return self is ProductStatus.PUBLISHED

    def can_transition_to(self, target: "ProductStatus") -> bool:
        return can_transition(self, target)

    def allowed_transitions(self) -> list["ProductStatus"]:
        return [status for status in ProductStatus if can_transition(self, status)]

    @classmethod
    def values(cls) -> list[str]:
        return [status.value for status in cls]

    @classmethod
    def active_statuses(cls) -> list["ProductStatus"]:
        return [cls.PUBLISHED]

    @classmethod
    def pending_action_statuses(cls) -> list["ProductStatus"]:
        """Statuses waiting on a second admin."""
        return [cls.PENDING_VERIFICATION]

    @classmethod
    def editable_statuses(cls) -> list["ProductStatus"]:
        return [cls.DRAFT, cls.PENDING_VERIFICATION]


_LABELS = {
    ProductStatus.DRAFT: "Draft",
    ProductStatus.PENDING_VERIFICATION: "Pending Verification",
    ProductStatus.VERIFIED: "Verified",
    ProductStatus.PUBLISHED: "Published",
    ProductStatus.ARCHIVED: "Archived",
}

# Normal workflow edges. Archiving from anywhere and the archived -> published
# restore are checked separately in can_transition().
TRANSITIONS: Mapping[ProductStatus, frozenset[ProductStatus]] = {
    ProductStatus.DRAFT: frozenset({ProductStatus.PENDING_VERIFICATION}),
    ProductStatus.PENDING_VERIFICATION: frozenset(
        {ProductStatus.VERIFIED, ProductStatus.DRAFT}
    ),
    ProductStatus.VERIFIED: frozenset(
        {ProductStatus.PUBLISHED, ProductStatus.PENDING_VERIFICATION}
    ),
    ProductStatus.PUBLISHED: frozenset({ProductStatus.VERIFIED}),
    ProductStatus.ARCHIVED: frozenset({ProductStatus.DRAFT}),
}


def can_transition(source: ProductStatus, target: ProductStatus) -> bool:
    """Return True if ``source -> target`` is a legal status change."""
    if target is ProductStatus.ARCHIVED:
        return True

    if source is ProductStatus.ARCHIVED and target is ProductStatus.PUBLISHED:
        return True

    return target in TRANSITIONS.get(source, frozenset())


def ensure_transition(source: ProductStatus, target: ProductStatus) -> None:
    """Raise IllegalTransitionError unless ``source -> target`` is legal."""
    if not can_transition(source, target):
        raise IllegalTransitionError(source, target)
