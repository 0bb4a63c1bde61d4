"""Microphone lifecycle state machine.

All decisions about when speech recognition runs live in ``dispatch``. The
public methods are thin wrappers that name the events.

States::

    IDLE ──activate──> LISTENING ──destination resolved──> WAITING_FOR_CONFIRMATION
      ^                   |  ^                                  |        |
      |                   |  └────────── activate ──────────────┘        |
    STOPPED <─────────────┴── start navigation / timeout / permission ───┘

While ``is_navigating`` is set the recognizer is never restarted
automatically; only an explicit activation (or the user gesture that clears a
permission block) opens it again.
"""

import enum
from dataclasses import dataclass
from typing import Callable, Optional

from .config import CONFIG
from .errors import RecognitionError
from .models import MicState


class MicEvent(str, enum.Enum):
    ACTIVATE = "activate"
    DESTINATION_RESOLVED = "destination_resolved"
    SUSPEND = "suspend"
    RESUME = "resume"
    CONFIRMATION_TIMEOUT = "confirmation_timeout"
    START_NAVIGATION = "start_navigation"
    RESET_NAVIGATION = "reset_navigation"
    RECOGNITION_START = "recognition_start"
    RECOGNITION_END = "recognition_end"
    RECOGNITION_ERROR = "recognition_error"
    RESTART_DUE = "restart_due"
    USER_GESTURE = "user_gesture"
    STOP = "stop"


ACTIVE_STATES = (MicState.LISTENING, MicState.WAITING_FOR_CONFIRMATION)


@dataclass
class MicrophoneRecord:
    state: MicState = MicState.IDLE
    is_navigating: bool = False
    user_gesture_received: bool = False
    manually_stopped: bool = False
    awaiting_gesture: bool = False
    suspended: bool = False  # paused while we speak
    recognizer_active: bool = False
    restart_token: int = 0
    confirmation_token: int = 0

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "is_navigating": self.is_navigating,
            "user_gesture_received": self.user_gesture_received,
            "manually_stopped": self.manually_stopped,
            "awaiting_gesture": self.awaiting_gesture,
            "suspended": self.suspended,
            "recognizer_active": self.recognizer_active,
        }


class MicrophoneLifecycle:
    """Decides when the speech recognizer listens, waits, or stays silent"""

    def __init__(self, recognizer, scheduler, logger=None,
                 on_state_change: Optional[Callable[[MicState, MicState], None]] = None,
                 config: Optional[dict] = None):
        config = config or CONFIG
        self.recognizer = recognizer
        self.scheduler = scheduler
        self.logger = logger
        self.on_state_change = on_state_change
        self.confirmation_window = config["confirmation_window"]
        self.restart_delay = config["recognition_restart_delay"]
        self.record = MicrophoneRecord()
        self._restart_handle = None
        self._confirmation_handle = None

    @property
    def state(self) -> MicState:
        return self.record.state

    @property
    def is_navigating(self) -> bool:
        return self.record.is_navigating

    @property
    def accepting_commands(self) -> bool:
        return self.record.state in ACTIVE_STATES and not self.record.suspended

    # Named events

    def activate(self) -> MicState:
        return self.dispatch(MicEvent.ACTIVATE)

    def destination_resolved(self) -> MicState:
        return self.dispatch(MicEvent.DESTINATION_RESOLVED)

    def suspend(self) -> MicState:
        return self.dispatch(MicEvent.SUSPEND)

    def resume(self) -> MicState:
        return self.dispatch(MicEvent.RESUME)

    def start_navigation(self) -> MicState:
        return self.dispatch(MicEvent.START_NAVIGATION)

    def reset_navigation(self) -> MicState:
        return self.dispatch(MicEvent.RESET_NAVIGATION)

    def handle_recognition_start(self) -> MicState:
        return self.dispatch(MicEvent.RECOGNITION_START)

    def handle_recognition_end(self) -> MicState:
        return self.dispatch(MicEvent.RECOGNITION_END)

    def handle_recognition_error(self, code: str) -> MicState:
        return self.dispatch(MicEvent.RECOGNITION_ERROR, code=code)

    def handle_user_gesture(self) -> MicState:
        return self.dispatch(MicEvent.USER_GESTURE)

    def stop(self) -> MicState:
        return self.dispatch(MicEvent.STOP)

    # Transition function

    def dispatch(self, event: MicEvent, **payload) -> MicState:
        rec = self.record
        old_state = rec.state

        if event == MicEvent.ACTIVATE:
            rec.user_gesture_received = True
            rec.awaiting_gesture = False
            rec.manually_stopped = False
            self._cancel_confirmation()
            rec.state = MicState.LISTENING
            if not rec.suspended:
                self._start_recognizer()

        elif event == MicEvent.DESTINATION_RESOLVED:
            # Silent while the destination is read out; resume() opens the window
            self._cancel_confirmation()
            self._cancel_restart()
            rec.manually_stopped = False
            rec.state = MicState.WAITING_FOR_CONFIRMATION
            rec.suspended = True
            self._stop_recognizer()

        elif event == MicEvent.SUSPEND:
            rec.suspended = True
            self._cancel_restart()
            self._cancel_confirmation()
            self._stop_recognizer()

        elif event == MicEvent.RESUME:
            rec.suspended = False
            if rec.state in ACTIVE_STATES and not rec.manually_stopped and not rec.awaiting_gesture:
                if rec.state == MicState.WAITING_FOR_CONFIRMATION:
                    self._arm_confirmation()
                self._start_recognizer()

        elif event == MicEvent.CONFIRMATION_TIMEOUT:
            token = payload.get("token")
            if token == rec.confirmation_token and rec.state == MicState.WAITING_FOR_CONFIRMATION:
                self._confirmation_handle = None
                self._cancel_restart()
                rec.state = MicState.STOPPED
                rec.manually_stopped = True
                self._stop_recognizer()

        elif event == MicEvent.START_NAVIGATION:
            self._cancel_confirmation()
            self._cancel_restart()
            rec.is_navigating = True
            rec.manually_stopped = True
            rec.state = MicState.STOPPED
            self._stop_recognizer()

        elif event == MicEvent.RESET_NAVIGATION:
            rec.is_navigating = False

        elif event == MicEvent.RECOGNITION_START:
            rec.recognizer_active = True

        elif event == MicEvent.RECOGNITION_END:
            rec.recognizer_active = False
            if rec.suspended or rec.manually_stopped or rec.state not in ACTIVE_STATES:
                pass
            elif rec.is_navigating:
                self._cancel_confirmation()
                rec.state = MicState.STOPPED
            elif rec.user_gesture_received:
                self._schedule_restart()
            else:
                rec.state = MicState.STOPPED
                rec.awaiting_gesture = True

        elif event == MicEvent.RESTART_DUE:
            token = payload.get("token")
            if token == rec.restart_token:
                self._restart_handle = None
                if self._may_auto_restart():
                    self._start_recognizer()

        elif event == MicEvent.RECOGNITION_ERROR:
            error = RecognitionError(payload.get("code", ""))
            if error.is_transient:
                pass
            elif error.is_permission_denied:
                self._cancel_confirmation()
                self._cancel_restart()
                rec.state = MicState.STOPPED
                rec.awaiting_gesture = True
                rec.user_gesture_received = False
                rec.recognizer_active = False
            else:
                self._log("Recognition error", {"code": error.code})

        elif event == MicEvent.USER_GESTURE:
            rec.user_gesture_received = True
            if rec.awaiting_gesture:
                rec.awaiting_gesture = False
                rec.manually_stopped = False
                rec.state = MicState.LISTENING
                if not rec.suspended:
                    self._start_recognizer()

        elif event == MicEvent.STOP:
            self._cancel_confirmation()
            self._cancel_restart()
            rec.manually_stopped = True
            rec.state = MicState.STOPPED
            self._stop_recognizer()

        if rec.state != old_state:
            self._log("Microphone state", {"event": event.value, "from": old_state.value, "to": rec.state.value})
            if self.on_state_change:
                self.on_state_change(old_state, rec.state)
        return rec.state

    def _may_auto_restart(self) -> bool:
        rec = self.record
        return (
            rec.state in ACTIVE_STATES
            and not rec.is_navigating
            and not rec.manually_stopped
            and not rec.suspended
            and not rec.awaiting_gesture
            and rec.user_gesture_received
            and not rec.recognizer_active
        )

    def _schedule_restart(self):
        self._cancel_restart()
        token = self.record.restart_token
        self._restart_handle = self.scheduler.call_later(
            self.restart_delay, self.dispatch, MicEvent.RESTART_DUE, token=token
        )

    def _cancel_restart(self):
        # Bumping the token turns an already-queued timer into a no-op
        self.record.restart_token += 1
        if self._restart_handle is not None:
            self._restart_handle.cancel()
            self._restart_handle = None

    def _arm_confirmation(self):
        self._cancel_confirmation()
        token = self.record.confirmation_token
        self._confirmation_handle = self.scheduler.call_later(
            self.confirmation_window, self.dispatch, MicEvent.CONFIRMATION_TIMEOUT, token=token
        )

    def _cancel_confirmation(self):
        self.record.confirmation_token += 1
        if self._confirmation_handle is not None:
            self._confirmation_handle.cancel()
            self._confirmation_handle = None

    def _start_recognizer(self):
        if self.record.recognizer_active:
            return
        try:
            self.recognizer.start()
        except RecognitionError as e:
            self._log("Recognizer start failed", {"code": e.code})
            return
        self.record.recognizer_active = True

    def _stop_recognizer(self):
        if not self.record.recognizer_active:
            return
        self.record.recognizer_active = False
        self.recognizer.stop()

    def _log(self, message: str, data: Optional[dict] = None):
        if self.logger:
            self.logger.log(message, data)
