# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Provisioning of one child account with compensation on failure.

The provisioner is an explicit state machine:

    start -> username_allocated -> identity_created -> profile_created
          -> domain_record_created

Any non-terminal state may fail into rolling_back -> failed. While
rolling back, the steps that completed are undone in reverse order. An
undo that fails is recorded as a RollbackWarning, logged at error level,
and the unwind carries on with the remaining steps. The child's outcome
always reports the failure that started the rollback. A cancelled run
rolls back the same way before the cancellation propagates.

Either all three records of a child exist and reference each other, or
none of them do (apart from resources named by a RollbackWarning).
"""

import asyncio
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from pydantic import SecretStr

from src.core.config.settings import ProvisioningSettings
from src.domains.family_approval.errors import FamilyApprovalError
from src.domains.family_approval.store import ProfileFields, StudentFields
from src.domains.family_approval.username import UsernameAllocator
from src.domains.family_approval.writers import (
    DomainRecordWriter,
    IdentityBinder,
    ProfileWriter,
)
from src.models.family_approval import (
    ChildFailure,
    ChildSpec,
    ProvisionedAccount,
    RollbackWarning,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)


class ProvisioningState(str, Enum):
    """States of a child provisioning run."""

    START = "start"
    USERNAME_ALLOCATED = "username_allocated"
    IDENTITY_CREATED = "identity_created"
    PROFILE_CREATED = "profile_created"
    DOMAIN_RECORD_CREATED = "domain_record_created"
    ROLLING_BACK = "rolling_back"
    FAILED = "failed"


_TRANSITIONS: dict[ProvisioningState, frozenset[ProvisioningState]] = {
    ProvisioningState.START: frozenset(
        {ProvisioningState.USERNAME_ALLOCATED, ProvisioningState.ROLLING_BACK}
    ),
    ProvisioningState.USERNAME_ALLOCATED: frozenset(
        {ProvisioningState.IDENTITY_CREATED, ProvisioningState.ROLLING_BACK}
    ),
    ProvisioningState.IDENTITY_CREATED: frozenset(
        {ProvisioningState.PROFILE_CREATED, ProvisioningState.ROLLING_BACK}
    ),
    ProvisioningState.PROFILE_CREATED: frozenset(
        {ProvisioningState.DOMAIN_RECORD_CREATED, ProvisioningState.ROLLING_BACK}
    ),
    ProvisioningState.ROLLING_BACK: frozenset({ProvisioningState.FAILED}),
    ProvisioningState.DOMAIN_RECORD_CREATED: frozenset(),
    ProvisioningState.FAILED: frozenset(),
}

# Step attempted from each state; recorded as failed_at on failure
_STEP_FROM: dict[ProvisioningState, str] = {
    ProvisioningState.START: "allocate_username",
    ProvisioningState.USERNAME_ALLOCATED: "create_identity",
    ProvisioningState.IDENTITY_CREATED: "create_profile",
    ProvisioningState.PROFILE_CREATED: "create_domain_record",
}


@dataclass
class _Compensation:
    step: str
    resource_id: str
    undo: Callable[[str], Awaitable[bool]]


@dataclass
class ProvisioningContext:
    """Progress of one child through the state machine."""

    child: ChildSpec
    state: ProvisioningState = ProvisioningState.START
    step: str = "validate"
    username: str | None = None
    login_email: str | None = None
    secret: SecretStr | None = None
    identity_id: str | None = None
    profile_id: str | None = None
    domain_record_id: str | None = None
    compensations: list[_Compensation] = field(default_factory=list)
    history: list[ProvisioningState] = field(default_factory=list)

    def transition(self, target: ProvisioningState) -> None:
        """Move to target, rejecting edges the state machine does not have."""
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal provisioning transition {self.state.value} -> {target.value}")
        self.history.append(self.state)
        self.state = target
        self.step = _STEP_FROM.get(target, self.step)

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.state]


@dataclass
class ChildOutcome:
    """Terminal outcome of provisioning one child."""

    child: ChildSpec
    account: ProvisionedAccount | None = None
    failure: ChildFailure | None = None
    final_state: ProvisioningState = ProvisioningState.START

    @property
    def succeeded(self) -> bool:
        return self.account is not None


def generate_initial_secret(num_bytes: int) -> SecretStr:
    """Generate a URL-safe random initial password."""
    return SecretStr(secrets.token_urlsafe(num_bytes))


class ChildAccountProvisioner:
    """Creates the identity, profile and student record of one child.

    Example:
        provisioner = ChildAccountProvisioner(allocator, binder, profiles, records, settings)
        outcome = await provisioner.provision(child, organization_id)
        if outcome.succeeded:
            print(outcome.account.username)
    """

    def __init__(
        self,
        allocator: UsernameAllocator,
        identity_binder: IdentityBinder,
        profile_writer: ProfileWriter,
        domain_record_writer: DomainRecordWriter,
        settings: ProvisioningSettings,
        secret_factory: Callable[[int], SecretStr] = generate_initial_secret,
    ) -> None:
        self._allocator = allocator
        self._identity_binder = identity_binder
        self._profile_writer = profile_writer
        self._domain_record_writer = domain_record_writer
        self._settings = settings
        self._secret_factory = secret_factory

    async def provision(self, child: ChildSpec, organization_id: str) -> ChildOutcome:
        """Provision one child. Never raises for per-child failures.

        Args:
            child: The child as submitted.
            organization_id: Organization the child joins.

        Returns:
            ChildOutcome with either the account or the failure.
        """
        ctx = ProvisioningContext(child=child)

        try:
            # Validation precedes every write, identity included
            self._domain_record_writer.validate(child)
            ctx.step = _STEP_FROM[ProvisioningState.START]

            await self._allocate_username(ctx)
            await self._create_identity(ctx, organization_id)
            await self._create_profile(ctx, organization_id)
            await self._create_domain_record(ctx, organization_id)
        except FamilyApprovalError as e:
            return await self._fail(ctx, e.message, e.error_code)
        except asyncio.CancelledError:
            logger.warning("child_provisioning_cancelled", child_name=child.name, step=ctx.step)
            ctx.transition(ProvisioningState.ROLLING_BACK)
            await self._roll_back(ctx)
            ctx.transition(ProvisioningState.FAILED)
            raise
        except Exception as e:
            logger.exception(
                "child_provisioning_crashed",
                child_name=child.name,
                state=ctx.state.value,
                step=ctx.step,
            )
            return await self._fail(ctx, f"Unexpected error: {e}", "unexpected_error")

        logger.info(
            "child_provisioned",
            child_name=child.name,
            username=ctx.username,
            identity_id=ctx.identity_id,
            student_id=ctx.domain_record_id,
        )
        return ChildOutcome(
            child=child,
            account=ProvisionedAccount(
                child_name=child.name,
                username=ctx.username,
                login_email=ctx.login_email,
                identity_id=ctx.identity_id,
                profile_id=ctx.profile_id,
                domain_record_id=ctx.domain_record_id,
                initial_secret=ctx.secret,
            ),
            final_state=ctx.state,
        )

    async def release(self, child: ChildSpec, account: ProvisionedAccount) -> list[RollbackWarning]:
        """Undo a completed provisioning run, student record first.

        Returns:
            Warnings for records that could not be removed.
        """
        ctx = ProvisioningContext(child=child)
        ctx.compensations = [
            _Compensation("delete_identity", account.identity_id, self._identity_binder.destroy),
            _Compensation("delete_profile", account.profile_id, self._profile_writer.destroy),
            _Compensation(
                "delete_domain_record",
                account.domain_record_id,
                self._domain_record_writer.destroy,
            ),
        ]
        logger.info("child_account_released", child_name=child.name, username=account.username)
        return await self._roll_back(ctx)

    async def _allocate_username(self, ctx: ProvisioningContext) -> None:
        ctx.username = await self._allocator.allocate(ctx.child.name)
        ctx.login_email = self._identity_binder.login_email(ctx.username)
        ctx.transition(ProvisioningState.USERNAME_ALLOCATED)

    async def _create_identity(self, ctx: ProvisioningContext, organization_id: str) -> None:
        child = ctx.child
        first_name, _, last_name = child.name.strip().partition(" ")
        ctx.secret = self._secret_factory(self._settings.initial_secret_bytes)

        ctx.identity_id = await self._identity_binder.create(
            ctx.username,
            ctx.secret,
            {
                "full_name": child.name,
                "first_name": first_name,
                "last_name": last_name.strip(),
                "user_role": "student",
                "age": child.age,
                "level": child.level,
                "organization_id": organization_id,
            },
        )
        ctx.compensations.append(
            _Compensation("delete_identity", ctx.identity_id, self._identity_binder.destroy)
        )
        ctx.transition(ProvisioningState.IDENTITY_CREATED)

    async def _create_profile(self, ctx: ProvisioningContext, organization_id: str) -> None:
        ctx.profile_id = await self._profile_writer.create(
            ctx.identity_id,
            ProfileFields(
                email=ctx.login_email,
                full_name=ctx.child.name,
                organization_id=organization_id,
            ),
        )
        ctx.compensations.append(
            _Compensation("delete_profile", ctx.profile_id, self._profile_writer.destroy)
        )
        ctx.transition(ProvisioningState.PROFILE_CREATED)

    async def _create_domain_record(self, ctx: ProvisioningContext, organization_id: str) -> None:
        child = ctx.child
        ctx.domain_record_id = await self._domain_record_writer.create(
            ctx.profile_id,
            StudentFields(
                name=child.name,
                age=child.age,
                level=child.level,
                organization_id=organization_id,
                notes=child.notes,
                profile_image=child.profile_image,
            ),
        )
        ctx.compensations.append(
            _Compensation(
                "delete_domain_record",
                ctx.domain_record_id,
                self._domain_record_writer.destroy,
            )
        )
        ctx.transition(ProvisioningState.DOMAIN_RECORD_CREATED)

    async def _fail(self, ctx: ProvisioningContext, reason: str, error_code: str) -> ChildOutcome:
        failed_at = ctx.step
        logger.warning(
            "child_provisioning_failed",
            child_name=ctx.child.name,
            failed_at=failed_at,
            error_code=error_code,
            reason=reason,
            completed_steps=[c.step for c in ctx.compensations],
        )

        ctx.transition(ProvisioningState.ROLLING_BACK)
        warnings = await self._roll_back(ctx)
        ctx.transition(ProvisioningState.FAILED)

        return ChildOutcome(
            child=ctx.child,
            failure=ChildFailure(
                child=ctx.child,
                reason=reason,
                error_code=error_code,
                failed_at=failed_at,
                rollback_warnings=warnings,
            ),
            final_state=ctx.state,
        )

    async def _roll_back(self, ctx: ProvisioningContext) -> list[RollbackWarning]:
        warnings: list[RollbackWarning] = []

        for compensation in reversed(ctx.compensations):
            try:
                removed = await compensation.undo(compensation.resource_id)
            except Exception as e:
                warning = RollbackWarning(
                    step=compensation.step,
                    resource_id=compensation.resource_id,
                    error=str(e),
                )
                warnings.append(warning)
                logger.error(
                    "rollback_step_failed",
                    child_name=ctx.child.name,
                    step=compensation.step,
                    resource_id=compensation.resource_id,
                    error=str(e),
                )
                continue

            if removed:
                logger.info(
                    "rollback_step_completed",
                    step=compensation.step,
                    resource_id=compensation.resource_id,
                )
            else:
                logger.info(
                    "rollback_step_already_absent",
                    step=compensation.step,
                    resource_id=compensation.resource_id,
                )

        ctx.compensations.clear()
        return warnings
