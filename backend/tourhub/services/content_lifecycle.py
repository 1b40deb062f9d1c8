"""Lifecycles for moderated content: destinations, guide verifications, and
the guide/account status carried on users.
"""

from tourhub.models.destination import DestinationStatus as D
from tourhub.models.guide_verification import VerificationStatus as V
from tourhub.models.user import AccountStatus as A
from tourhub.models.user import GuideStatus as G
from tourhub.services.state_machine import DELETED, Actor, Lifecycle, Transition

DESTINATION_LIFECYCLE = Lifecycle.define(
    "destination",
    states=D,
    transitions=[
        Transition(D.DRAFT.value, "submit", D.PENDING.value, Actor.OWNER),
        Transition(D.REVISION_REQUESTED.value, "submit", D.PENDING.value, Actor.OWNER),
        Transition(D.REVISION_REQUESTED.value, "withdraw", D.DRAFT.value, Actor.OWNER),
        Transition(D.REJECTED.value, "reset", D.DRAFT.value, Actor.OWNER),
        Transition(D.PENDING.value, "approve", D.APPROVED.value, Actor.MODERATOR),
        Transition(D.PENDING.value, "reject", D.REJECTED.value, Actor.MODERATOR),
        Transition(
            D.PENDING.value, "request_revision", D.REVISION_REQUESTED.value, Actor.MODERATOR
        ),
        Transition(D.APPROVED.value, "feature", D.APPROVED.value, Actor.MODERATOR),
        Transition(D.APPROVED.value, "unfeature", D.APPROVED.value, Actor.MODERATOR),
        # Approved content is frozen: any non-admin edit sends it back to draft.
        Transition(D.APPROVED.value, "edit", D.APPROVED.value, Actor.ADMIN),
        Transition(D.APPROVED.value, "edit", D.DRAFT.value, Actor.NON_ADMIN),
        Transition(D.PENDING.value, "edit", D.PENDING.value, Actor.ADMIN),
        Transition(D.DRAFT.value, "edit", D.DRAFT.value),
        Transition(D.REVISION_REQUESTED.value, "edit", D.REVISION_REQUESTED.value),
        Transition(D.REJECTED.value, "edit", D.REJECTED.value),
        Transition(D.DRAFT.value, "delete", DELETED, Actor.OWNER),
        Transition(D.DRAFT.value, "delete", DELETED, Actor.ADMIN),
        Transition(D.PENDING.value, "delete", DELETED, Actor.ADMIN),
        Transition(D.APPROVED.value, "delete", DELETED, Actor.ADMIN),
        Transition(D.REJECTED.value, "delete", DELETED, Actor.ADMIN),
        Transition(D.REVISION_REQUESTED.value, "delete", DELETED, Actor.ADMIN),
    ],
    already_processed={
        "request_revision": (D.APPROVED, D.REJECTED, D.REVISION_REQUESTED),
    },
)

VERIFICATION_LIFECYCLE = Lifecycle.define(
    "guide verification",
    states=V,
    transitions=[
        Transition(V.PENDING.value, "approve", V.APPROVED.value, Actor.MODERATOR),
        Transition(V.PENDING.value, "reject", V.REJECTED.value, Actor.MODERATOR),
    ],
    terminal=(V.APPROVED, V.REJECTED),
)

GUIDE_STATUS_LIFECYCLE = Lifecycle.define(
    "guide status",
    states=G,
    transitions=[
        Transition(G.UNVERIFIED.value, "apply", G.PENDING.value, Actor.OWNER),
        Transition(G.REJECTED.value, "apply", G.PENDING.value, Actor.OWNER),
        Transition(G.PENDING.value, "approve", G.VERIFIED.value, Actor.MODERATOR),
        Transition(G.PENDING.value, "reject", G.REJECTED.value, Actor.MODERATOR),
        Transition(G.VERIFIED.value, "suspend", G.SUSPENDED.value, Actor.MODERATOR),
        Transition(G.SUSPENDED.value, "reinstate", G.VERIFIED.value, Actor.MODERATOR),
    ],
)

ACCOUNT_LIFECYCLE = Lifecycle.define(
    "account",
    states=A,
    transitions=[
        Transition(A.ACTIVE.value, "deactivate", A.INACTIVE.value, Actor.MODERATOR),
        Transition(A.INACTIVE.value, "reactivate", A.ACTIVE.value, Actor.MODERATOR),
        Transition(A.ACTIVE.value, "change_role", A.ACTIVE.value, Actor.ADMIN),
        Transition(A.INACTIVE.value, "change_role", A.INACTIVE.value, Actor.ADMIN),
    ],
)


def validate_destination_transition(
    current: str, action: str, actor_is_owner: bool, actor_role: str | None
) -> str:
    return DESTINATION_LIFECYCLE.validate(
        current, action, actor_is_owner=actor_is_owner, actor_role=actor_role
    )


def validate_verification_transition(
    current: str, action: str, actor_is_owner: bool, actor_role: str | None
) -> str:
    return VERIFICATION_LIFECYCLE.validate(
        current, action, actor_is_owner=actor_is_owner, actor_role=actor_role
    )


def validate_guide_status_transition(
    current: str, action: str, actor_is_owner: bool, actor_role: str | None
) -> str:
    return GUIDE_STATUS_LIFECYCLE.validate(
        current, action, actor_is_owner=actor_is_owner, actor_role=actor_role
    )


def validate_account_transition(
    current: str, action: str, actor_is_owner: bool, actor_role: str | None
) -> str:
    return ACCOUNT_LIFECYCLE.validate(
        current, action, actor_is_owner=actor_is_owner, actor_role=actor_role
    )
