"""
Submission Security Coordinator

Orchestrates the protections applied to a form submission:

1. lock the submit control with a busy label
2. rate check (token bucket for registration, attempt window for login)
3. drop unexpected fields and validate the form
4. HTML-sanitize validated values

Each attempt walks the state machine
``IDLE -> DEBOUNCED -> RATE_CHECKED -> VALIDATED | REJECTED -> IDLE`` and
ends in exactly one outcome: `RateLimited`, `ValidationFailed` or `Accepted`.
On rejection the control is restored here; on acceptance the caller restores
it once its own processing finishes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import structlog

from formguard.core.config.rate_limiting import ADMIN_ACTIONS
from formguard.core.config.settings import Settings
from formguard.core.exceptions import InvalidStateTransitionError, ValidationError
from formguard.core.logging import mask_identifier
from formguard.domain.rate_limiting import (
    AttemptWindowLimiter,
    KeyValueStore,
    LimiterStatus,
    RateLimitResult,
    StatusObserver,
    TokenBucketLimiter,
)
from formguard.domain.validation import (
    LOGIN_FORM,
    REGISTRATION_FORM,
    FieldSchema,
    InputSanitizer,
    InputValidator,
)
from formguard.utils.clock import Clock

from .debouncer import ButtonDebouncer, SubmitControl
from .outcomes import Accepted, RateLimited, SubmissionOutcome, ValidationFailed

logger = structlog.get_logger(__name__)

BUSY_LABELS = {
    REGISTRATION_FORM: "Validating...",
    LOGIN_FORM: "Signing in...",
}

INVALID_DOCUMENT_ID_MESSAGE = "Invalid document ID"


class SubmissionState(str, Enum):
    IDLE = "IDLE"
    DEBOUNCED = "DEBOUNCED"
    RATE_CHECKED = "RATE_CHECKED"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"


_TRANSITIONS = {
    SubmissionState.IDLE: {SubmissionState.DEBOUNCED},
    SubmissionState.DEBOUNCED: {SubmissionState.RATE_CHECKED, SubmissionState.REJECTED},
    SubmissionState.RATE_CHECKED: {SubmissionState.VALIDATED, SubmissionState.REJECTED},
    SubmissionState.VALIDATED: {SubmissionState.IDLE},
    SubmissionState.REJECTED: {SubmissionState.IDLE},
}


@dataclass
class SubmissionAttempt:
    """Lifecycle of one submission through the coordinator."""

    form_type: str
    state: SubmissionState = SubmissionState.IDLE
    history: List[SubmissionState] = field(default_factory=lambda: [SubmissionState.IDLE])

    def advance(self, target: SubmissionState) -> None:
        """Move to `target`.

        Raises:
            InvalidStateTransitionError: If the move is not allowed from the current state.
        """
        if target not in _TRANSITIONS[self.state]:
            raise InvalidStateTransitionError(self.state.value, target.value)
        self.state = target
        self.history.append(target)


class SecurityCoordinator:
    """Applies debouncing, rate limiting, validation and sanitization to submissions.

    Build with `SecurityCoordinator.create(...)` so the limiters are loaded
    from storage, and `close()` it at teardown.
    """

    def __init__(
        self,
        registration_limiter: TokenBucketLimiter,
        login_limiter: AttemptWindowLimiter,
        admin_limiters: Mapping[str, AttemptWindowLimiter],
        validator: Optional[InputValidator] = None,
        sanitizer: Optional[InputSanitizer] = None,
        debouncer: Optional[ButtonDebouncer] = None,
        store: Optional[KeyValueStore] = None,
    ):
        self.registration_limiter = registration_limiter
        self.login_limiter = login_limiter
        self.admin_limiters = dict(admin_limiters)
        self.validator = validator or InputValidator()
        self.sanitizer = sanitizer or InputSanitizer()
        self.debouncer = debouncer or ButtonDebouncer()
        self.last_attempt: Optional[SubmissionAttempt] = None
        self._owned_store = store

    @classmethod
    async def create(
        cls,
        settings: Optional[Settings] = None,
        store: Optional[KeyValueStore] = None,
        observer: Optional[StatusObserver] = None,
        *,
        clock: Optional[Clock] = None,
        auto_refill: bool = True,
    ) -> SecurityCoordinator:
        """Build every limiter from settings and load persisted state.

        When no store is given one is built from `STORAGE_BACKEND` and closed
        together with the coordinator.
        """
        if settings is None:
            from formguard.core.config.settings import settings as default_settings

            settings = default_settings

        owned_store = None
        if store is None:
            from formguard.infrastructure.storage import build_store

            store = owned_store = build_store(settings)

        registration = await TokenBucketLimiter.create(
            settings.registration_config(),
            REGISTRATION_FORM,
            store,
            clock=clock,
            observer=observer,
            key_prefix=settings.STORAGE_KEY_PREFIX,
            auto_refill=auto_refill,
        )
        login = AttemptWindowLimiter(settings.login_config(), LOGIN_FORM, clock)
        admin = {
            action: AttemptWindowLimiter(config, f"admin_{action}", clock)
            for action, config in settings.admin_configs().items()
        }

        logger.info(
            "Security coordinator ready",
            persistent=registration.persistence_available,
            admin_actions=list(admin),
        )
        return cls(
            registration,
            login,
            admin,
            debouncer=ButtonDebouncer(settings.DEBOUNCE_DURATION_MS),
            store=owned_store,
        )

    async def close(self) -> None:
        """Stop background refills and release an owned store."""
        await self.registration_limiter.close()
        if self._owned_store is not None:
            await self._owned_store.close()
            self._owned_store = None

    async def process_submission(
        self,
        form_type: str,
        form_data: Mapping[str, Any],
        control: SubmitControl,
        client_key: Optional[str] = None,
    ) -> SubmissionOutcome:
        """
        Run a submission through every protection.

        Args:
            form_type: "registration" or "login".
            form_data: Raw field values keyed by field name.
            control: Submit control to lock while the attempt is processed.
            client_key: Caller identity for the login attempt window.

        Returns:
            RateLimited, ValidationFailed or Accepted.

        Raises:
            UnknownFormTypeError: If the form type has no schema.
        """
        schema = self.validator.schema_for(form_type)
        attempt = SubmissionAttempt(form_type)
        self.last_attempt = attempt

        attempt.advance(SubmissionState.DEBOUNCED)
        self.debouncer.set_loading(control, BUSY_LABELS.get(form_type, "Processing..."))

        rate_result = await self._check_rate(form_type, client_key)
        if rate_result is not None and not rate_result.allowed:
            return self._reject(attempt, control, RateLimited.from_result(rate_result))
        attempt.advance(SubmissionState.RATE_CHECKED)

        self.validator.check_unexpected_fields(form_data, form_type)
        validation = self.validator.validate_form(form_type, form_data)
        if not validation.valid:
            return self._reject(attempt, control, ValidationFailed(dict(validation.errors)))
        attempt.advance(SubmissionState.VALIDATED)

        data = self._sanitize_validated(schema, validation.sanitized)
        attempt.advance(SubmissionState.IDLE)
        logger.info("Submission accepted", form_type=form_type, fields=len(data))
        return Accepted(data)

    def record_login_success(self, client_key: Optional[str]) -> None:
        """Clear the login attempt window after a successful sign-in."""
        self.login_limiter.reset(self._login_key(client_key))

    def check_admin_action(self, action: str, actor_id: Optional[str] = None) -> Optional[RateLimited]:
        """
        Apply the secondary limiter of an admin action.

        Returns:
            RateLimited when the actor is throttled, otherwise None.

        Raises:
            ValidationError: If the action has no limiter.
        """
        limiter = self.admin_limiters.get(action)
        if limiter is None:
            raise ValidationError(
                f"Unknown admin action: {action!r} (expected one of {', '.join(ADMIN_ACTIONS)})",
                code="unknown_admin_action",
            )
        result = limiter.record_attempt(f"{action}_{actor_id or 'anon'}")
        if result.allowed:
            return None
        logger.warning(
            "Admin action rate limited",
            action=action,
            actor=mask_identifier(actor_id),
            retry_after=result.retry_after,
        )
        return RateLimited.from_result(result)

    def prepare_admin_update(
        self,
        document_id: str,
        changes: Mapping[str, Any],
        allowed_fields: Iterable[str],
        actor_id: Optional[str] = None,
    ) -> SubmissionOutcome:
        """Id check, rate check and whitelist an admin edit before it is stored."""
        if not self.validator.is_valid_document_id(document_id):
            logger.warning("Admin update rejected", reason="invalid_document_id", actor=mask_identifier(actor_id))
            return ValidationFailed({"document_id": INVALID_DOCUMENT_ID_MESSAGE})

        limited = self.check_admin_action("update", actor_id)
        if limited is not None:
            return limited

        projected = self.validator.filter_allowed_fields(changes, allowed_fields)
        dropped = [key for key in changes if key not in projected]
        if dropped:
            logger.warning("Admin update fields dropped", fields=dropped, actor=mask_identifier(actor_id))

        data = {
            key: self.sanitizer.sanitize_string(value) if isinstance(value, str) else value
            for key, value in projected.items()
        }
        return Accepted(data)

    def registration_status(self) -> LimiterStatus:
        return self.registration_limiter.get_status()

    async def _check_rate(self, form_type: str, client_key: Optional[str]) -> Optional[RateLimitResult]:
        if form_type == REGISTRATION_FORM:
            return await self.registration_limiter.try_consume()
        if form_type == LOGIN_FORM:
            return self.login_limiter.record_attempt(self._login_key(client_key))
        return None

    def _reject(
        self,
        attempt: SubmissionAttempt,
        control: SubmitControl,
        outcome: Union[RateLimited, ValidationFailed],
    ) -> SubmissionOutcome:
        attempt.advance(SubmissionState.REJECTED)
        self.debouncer.restore_from_loading(control)
        attempt.advance(SubmissionState.IDLE)
        logger.info(
            "Submission rejected",
            form_type=attempt.form_type,
            error_type=outcome.error_type.value,
        )
        return outcome

    def _sanitize_validated(
        self, schema: Mapping[str, FieldSchema], values: Mapping[str, Optional[str]]
    ) -> Dict[str, Any]:
        return {
            name: self.sanitizer.sanitize(value) if schema[name].sanitize else value
            for name, value in values.items()
        }

    @staticmethod
    def _login_key(client_key: Optional[str]) -> str:
        return f"login:{client_key or 'anonymous'}"
