from launchgate.shared.domain.collection.deadline_join import (
    SLOT_ATTRIBUTION,
    SLOT_PUSH_TOKEN,
    DeadlineJoinCoordinator,
    JoinSession,
    normalize_bundle_id,
)

__all__ = [
    "SLOT_ATTRIBUTION",
    "SLOT_PUSH_TOKEN",
    "DeadlineJoinCoordinator",
    "JoinSession",
    "normalize_bundle_id",
]
