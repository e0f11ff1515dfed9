"""Submit-control debouncing.

A `SubmitControl` is the host-agnostic stand-in for a submit button: the
debouncer flips its `disabled` flag and swaps its label, and whatever renders
the control reads those fields back.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_LOADING_TEXT = "Processing..."


@dataclass
class SubmitControl:
    """Mutable state of a submit control."""

    label: str = "Submit"
    disabled: bool = False
    saved_label: Optional[str] = None
    reenable_handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False, compare=False)

    @property
    def is_loading(self) -> bool:
        return self.saved_label is not None


class ButtonDebouncer:
    """Locks submit controls against repeated activation.

    Every operation is idempotent: disabling a disabled control only
    reschedules its fallback re-enable, and restoring a control that is not
    loading only re-enables it.
    """

    def __init__(self, default_duration_ms: int = 2000):
        if default_duration_ms <= 0:
            raise ValueError("default_duration_ms must be positive")
        self.default_duration_ms = default_duration_ms

    def disable(self, control: SubmitControl, duration_ms: Optional[int] = None) -> None:
        """Disable the control and re-enable it after `duration_ms` as a fallback.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        if duration_ms is None:
            duration_ms = self.default_duration_ms
        self._cancel_pending(control)
        control.disabled = True
        control.reenable_handle = loop.call_later(duration_ms / 1000, self.enable, control)

    def enable(self, control: SubmitControl) -> None:
        """Re-enable the control and cancel any pending fallback."""
        self._cancel_pending(control)
        control.disabled = False

    def set_loading(self, control: SubmitControl, text: str = DEFAULT_LOADING_TEXT) -> None:
        """Disable the control and show a busy label.

        The label in place before the first call is kept so it can be
        restored exactly, even if `set_loading` is called again meanwhile.
        """
        control.disabled = True
        if control.saved_label is None:
            control.saved_label = control.label
        control.label = text

    def restore_from_loading(self, control: SubmitControl) -> None:
        """Re-enable the control and put its original label back."""
        self.enable(control)
        if control.saved_label is not None:
            control.label = control.saved_label
            control.saved_label = None

    @staticmethod
    def _cancel_pending(control: SubmitControl) -> None:
        if control.reenable_handle is not None:
            control.reenable_handle.cancel()
            control.reenable_handle = None
