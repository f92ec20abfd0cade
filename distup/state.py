# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import enum


class State(enum.Enum):
    INIT = "init"
    DETECTING = "detecting"
    PREFLIGHT_CHECKING = "preflight-checking"
    SNAPSHOT_PROMPTING = "snapshot-prompting"
    BACKING_UP = "backing-up"
    RUNNING_PRE_HOOKS = "running-pre-hooks"
    REWRITING = "rewriting"
    REFRESHING = "refreshing"
    UPGRADING = "upgrading"
    CLEANING_UP = "cleaning-up"
    RUNNING_POST_HOOKS = "running-post-hooks"
    COMPLETED = "completed"
    ROLLING_BACK = "rolling-back"
    ABORTED = "aborted"

    @classmethod
    def from_stage(cls, stage: str) -> "State":
        return cls(stage)

    def __str__(self) -> str:
        return self.value


# States run by the actions flow, in order. A failure in any of them is rolled back.
FLOW_STATES = (
    State.BACKING_UP,
    State.RUNNING_PRE_HOOKS,
    State.REWRITING,
    State.REFRESHING,
    State.UPGRADING,
    State.CLEANING_UP,
    State.RUNNING_POST_HOOKS,
)
