# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import os
import time
import typing
from abc import ABC, abstractmethod
from enum import Enum

from . import files, log


class ActionState(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skip"
    FAILED = "failed"


# Unfortunately, dataclasses available since Python 3.7 aren't supported
# on Ubuntu 18 (Python 3.6)
class ActionResult:
    state: ActionState
    info: typing.Optional[str]

    def __init__(
        self,
        state: ActionState = ActionState.SUCCESS,
        info: typing.Optional[str] = None,
    ):
        self.state = state
        self.info = info

    def __repr__(self) -> str:
        attrs = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items())
        return f"{self.__class__.__name__}({attrs})"


class Action(ABC):
    """Base class for actions."""
    name: str
    description: str

    def __init__(self):
        self.name = ""
        self.description = ""

    def __repr__(self) -> str:
        attrs = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items())
        return f"{self.__class__.__name__}({attrs})"

    def __str__(self) -> str:
        return f"{self.name}"


class ActiveAction(Action):
    """
    A step changing the system. The prepare part makes the change, the revert
    part undoes it when one of the following steps fails.
    """

    def invoke_prepare(self) -> ActionResult:
        return self._prepare_action()

    def invoke_revert(self) -> ActionResult:
        return self._revert_action()

    def is_required(self) -> bool:
        return self._is_required()

    def _is_required(self) -> bool:
        # All actions are required by default - just to simplify things
        return True

    @abstractmethod
    def _prepare_action(self) -> ActionResult:
        pass

    @abstractmethod
    def _revert_action(self) -> ActionResult:
        pass


class ActionsFlow(ABC):
    def __enter__(self):
        return self

    def __exit__(self, *kwargs):
        pass


class FlowTracker(ABC):
    @abstractmethod
    def __call__(self, stage: str, finished: bool = False) -> None:
        pass


class ActiveFlow(ActionsFlow):
    state_dir: typing.Optional[str]
    _finished: bool
    stages: typing.Dict[str, typing.List[ActiveAction]]
    flow_tracker: typing.Optional[FlowTracker]
    actions_data: typing.Dict[str, typing.List[typing.Dict[str, typing.Any]]]
    current_stage: str
    current_action: str
    error: typing.Optional[typing.Union[Exception, str]]

    # The flow state is stored in state_dir, unless it's None (dry-run mode).
    # flow_tracker is notified when a stage starts and when it's finished.
    def __init__(
        self,
        stages: typing.Dict[str, typing.List[ActiveAction]],
        state_dir: typing.Optional[str],
        flow_tracker: typing.Optional[FlowTracker] = None,
    ):
        super().__init__()
        self.state_dir = state_dir
        self._finished = False
        self.stages = stages
        self.flow_tracker = flow_tracker
        self.actions_data = {"actions": []}
        self.current_stage = "initializing"
        self.current_action = "initializing"
        self.error = None

    @staticmethod
    def get_path_to_actions_data(state_dir: str) -> str:
        return os.path.join(state_dir, "actions.json")

    @property
    def path_to_actions_data(self) -> typing.Optional[str]:
        if self.state_dir is None:
            return None
        return self.get_path_to_actions_data(self.state_dir)

    def _track_flow(self, stage: str, finished: bool = False) -> None:
        log.debug(f"_track_flow(stage={stage!r}, finished={finished!r})")
        if self.flow_tracker is not None:
            self.flow_tracker(stage, finished=finished)

    def validate_actions(self):
        # Note. This one is for development purposes only
        for _, actions in self.stages.items():
            for action in actions:
                if not isinstance(action, ActiveAction):
                    raise TypeError(
                        "Not an ActiveAction passed into action flow. "
                        f"Name of the action is {action.name!r}"
                    )

    def pass_actions(self) -> bool:
        stages = self._get_flow()
        self._finished = False

        for stage_id, actions in stages.items():
            log.debug(f"Starting the stage {stage_id!r}")
            self._pre_stage(stage_id, actions)
            for action in actions:
                try:
                    if not self._is_action_required(stage_id, action):
                        log.info(f"Skipped: {action}")
                        self._save_action_state(stage_id, action.name, ActionState.SKIPPED)
                        continue

                    log.debug(f"Invoking action '{action}'")
                    action_start_time = int(time.time())
                    res = self._invoke_action(action)
                    action_duration = int(time.time()) - action_start_time
                    log.debug(f"Action '{action}' completed in {action_duration} s with result: {res}")
                    self._save_action_state(stage_id, action.name, res.state)

                    if res.state is ActionState.SUCCESS:
                        log.info(f"Success: {action}")
                    elif res.state is ActionState.SKIPPED:
                        msg = f"Skipped: {action}"
                        if res.info:
                            msg += f". Additional information: {res.info}"
                        log.info(msg)
                    elif res.state is ActionState.FAILED:
                        msg = f"Failed: {action}"
                        if res.info:
                            msg += f". Additional information: {res.info}"
                        self.error = msg
                        log.err(msg)
                        return False
                except UnicodeDecodeError as ex:
                    self._save_action_state(stage_id, action.name, ActionState.FAILED)
                    self.error = ex
                    log.err(f"Failed: {action}. The reason is encoding problem. Exception: {ex}")
                    raise ex
                except Exception as ex:
                    self._save_action_state(stage_id, action.name, ActionState.FAILED)
                    self.error = Exception(f"Failed: {action}. The reason: {ex}")
                    log.err(f"Failed: {action}. The reason: {ex}")
                    return False
            self._post_stage(stage_id, actions)

        self._finished = True
        return True

    def _get_flow(self) -> typing.Dict[str, typing.List[ActiveAction]]:
        return {}

    def _pre_stage(self, stage: str, actions: typing.List[ActiveAction]) -> None:
        log.info(f"Start stage {stage!r}.")
        self.current_stage = stage
        self._track_flow(stage)

    def _post_stage(self, stage: str, actions: typing.List[ActiveAction]) -> None:
        self._track_flow(stage, finished=True)

    def _is_action_required(self, stage: str, action: ActiveAction) -> bool:
        return action.is_required()

    def _invoke_action(self, action: ActiveAction) -> ActionResult:
        log.info(f"Do: {action}")
        self.current_action = action.name
        return self._do_invoke_action(action)

    @abstractmethod
    def _do_invoke_action(self, action: ActiveAction) -> ActionResult:
        pass

    def _save_action_state(self, stage: str, name: str, state: ActionState) -> None:
        for action in self.actions_data["actions"]:
            if action["stage"] == stage and action["name"] == name:
                action["state"] = state
                return

        self.actions_data["actions"].append({"stage": stage, "name": name, "state": state})

    def _get_stored_state(self, stage: str, name: str) -> typing.Optional[str]:
        for stored_action in self.actions_data["actions"]:
            if stored_action["stage"] == stage and stored_action["name"] == name:
                return stored_action["state"]
        return None

    def _load_actions_state(self) -> typing.Dict[str, typing.List[typing.Dict[str, typing.Any]]]:
        if self.path_to_actions_data is None:
            return {"actions": []}
        return files.read_json_file(self.path_to_actions_data, default={"actions": []})

    def _store_actions_state(self) -> None:
        if self.path_to_actions_data is None:
            return
        if not os.path.isdir(str(self.state_dir)):
            os.makedirs(str(self.state_dir), 0o750, exist_ok=True)
        files.rewrite_json_file(self.path_to_actions_data, self.actions_data)

    def is_failed(self) -> bool:
        return self.error is not None

    def get_error(self) -> typing.Optional[typing.Union[Exception, str]]:
        return self.error

    def get_current_stage(self) -> str:
        return self.current_stage

    def get_current_action(self) -> str:
        return self.current_action


class PrepareActionsFlow(ActiveFlow):
    def __enter__(self):
        # Every run starts from scratch, the stored state only serves the revert flow
        self.actions_data = {"actions": []}
        return self

    def __exit__(self, *kwargs):
        self._store_actions_state()

    def _get_flow(self) -> typing.Dict[str, typing.List[ActiveAction]]:
        return self.stages

    def _do_invoke_action(self, action: ActiveAction) -> ActionResult:
        return action.invoke_prepare()


class ReverseActionFlow(ActiveFlow):
    def __init__(
        self,
        stages: typing.Dict[str, typing.List[ActiveAction]],
        state_dir: typing.Optional[str],
        flow_tracker: typing.Optional[FlowTracker] = None,
        actions_data: typing.Optional[typing.Dict[str, typing.List[typing.Dict[str, typing.Any]]]] = None,
    ):
        super().__init__(stages, state_dir, flow_tracker)
        self._given_actions_data = actions_data

    def __enter__(self):
        if self._given_actions_data is not None:
            self.actions_data = self._given_actions_data
        else:
            self.actions_data = self._load_actions_state()
        return self

    def __exit__(self, *kwargs):
        # Keep the actions data if an error occurs because
        # the user will likely want to investigate what was done
        if self.error is None and self.path_to_actions_data is not None and os.path.exists(self.path_to_actions_data):
            os.remove(self.path_to_actions_data)

    def _get_flow(self) -> typing.Dict[str, typing.List[ActiveAction]]:
        res = {}
        for stage_id, actions in reversed(list(self.stages.items())):
            res[stage_id] = list(reversed(list(actions)))
        return res

    def _is_action_required(self, stage: str, action: ActiveAction) -> bool:
        # Only successfully performed actions are reverted. Failed actions are
        # expected to leave the system untouched and the rest were never started.
        return self._get_stored_state(stage, action.name) == ActionState.SUCCESS

    def _save_action_state(self, stage: str, name: str, state: ActionState) -> None:
        # Revert results must not overwrite the record of what was done
        pass


class RevertActionsFlow(ReverseActionFlow):
    def _do_invoke_action(self, action: ActiveAction) -> ActionResult:
        return action.invoke_revert()


class PreflightStatus(str, Enum):
    OK = "ok"
    WARN = "warn"
    FAIL = "fail"


class PreflightResult(typing.NamedTuple):
    check_name: str
    status: PreflightStatus
    message: str


class CheckAction(Action):
    """
    A read-only check of a pre-condition. A failed blocking check prevents
    the upgrade, a failed non-blocking one requires the user's agreement.
    """
    blocking: bool = True

    def do_check(self) -> bool:
        return self._do_check()

    def _do_check(self) -> bool:
        raise NotImplementedError("Not implemented check call")


class CheckFlow(ActionsFlow):
    stages: typing.List[CheckAction]

    def __init__(self, stages: typing.List[CheckAction]):
        super().__init__()
        self.stages = stages

    def validate_actions(self):
        # Note. This one is for development purposes only
        for check in self.stages:
            if not isinstance(check, CheckAction):
                raise TypeError(
                    "Not a CheckAction passed into check flow. "
                    f"Name of the action is {check.name!r}"
                )

    def make_checks(self) -> typing.List[PreflightResult]:
        results = []
        log.debug("Start checks")
        for check in self.stages:
            log.debug("Performing check: {name}".format(name=check.name))
            try:
                passed = check.do_check()
            except Exception as e:
                raise RuntimeError(f"Exception during checking of required pre-upgrade condition {check.name!r}") from e

            if passed:
                results.append(PreflightResult(check.name, PreflightStatus.OK, check.description))
            elif check.blocking:
                results.append(PreflightResult(check.name, PreflightStatus.FAIL, check.description))
            else:
                results.append(PreflightResult(check.name, PreflightStatus.WARN, check.description))
            log.debug(f"Check {check.name!r} result: {results[-1].status.value}")

        return results
