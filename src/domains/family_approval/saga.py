# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Family approval saga.

Turns a pending family approval into one account per child:

1. Load the approval. Only a pending approval with at least one child
   is processed.
2. Provision the children one after another in submission order. A
   failing child is rolled back and recorded; the loop continues.
3. If at least one account was created, mark the approval approved
   (only if it is still pending). With zero accounts it stays pending so
   the whole request can be retried.
4. Email the parent once. Delivery never affects the outcome.

Errors while loading or finalizing the approval propagate to the caller.
When the datastore fails the final status write, the accounts of the run
are removed before the error propagates, so a retry starts clean.
Per-child errors never leave the loop.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from src.core.config.settings import ProvisioningSettings, Settings
from src.domains.family_approval.errors import (
    AlreadyProcessedError,
    ApprovalNotFoundError,
    EmptyApprovalError,
    InvalidIdentifierError,
    StoreUnavailableError,
)
from src.domains.family_approval.notifications import NotificationDispatcher
from src.domains.family_approval.provisioner import ChildAccountProvisioner, ChildOutcome
from src.domains.family_approval.store import FamilyStore
from src.domains.family_approval.username import UsernameAllocator
from src.domains.family_approval.writers import (
    DomainRecordWriter,
    IdentityBinder,
    ProfileWriter,
)
from src.infrastructure.identity.base import IdentityProvider
from src.infrastructure.notifications.channels import BaseEmailChannel
from src.models.family_approval import (
    ApprovalResult,
    ApprovalStatus,
    ChildSpec,
    FamilyApprovalRequest,
    RollbackWarning,
)
from src.utils.datetime import utc_now
from src.utils.logging import get_logger

logger = get_logger(__name__)


def _require_uuid(value: str, field: str) -> None:
    try:
        UUID(value)
    except (ValueError, TypeError, AttributeError) as e:
        raise InvalidIdentifierError(
            f"{field} must be a UUID, got {value!r}",
            details={field: value},
        ) from e


class ApprovalSaga:
    """Approves or rejects family approvals.

    Example:
        saga = ApprovalSaga(store, provisioner, dispatcher, settings.provisioning)
        result = await saga.run(request_id, actor_id)
        print(result.approved_count, result.status)
    """

    def __init__(
        self,
        store: FamilyStore,
        provisioner: ChildAccountProvisioner,
        dispatcher: NotificationDispatcher,
        settings: ProvisioningSettings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._provisioner = provisioner
        self._dispatcher = dispatcher
        self._settings = settings
        self._clock = clock

    async def _load_pending(self, request_id: str) -> FamilyApprovalRequest:
        request = await self._store.load_approval(request_id)
        if request is None:
            raise ApprovalNotFoundError(
                f"Family approval {request_id} not found",
                details={"request_id": request_id},
            )
        if not request.is_pending:
            raise AlreadyProcessedError(
                f"Family approval {request_id} is already {request.status.value}",
                details={"request_id": request_id, "status": request.status.value},
            )
        return request

    async def run(
        self,
        request_id: str,
        actor_id: str,
        admin_notes: str | None = None,
    ) -> ApprovalResult:
        """Approve a family approval and provision its children.

        Args:
            request_id: Approval to process.
            actor_id: Administrator performing the approval.
            admin_notes: Optional notes recorded on the approval.

        Returns:
            ApprovalResult, also when some or all children failed.

        Raises:
            ApprovalNotFoundError: If the approval does not exist.
            AlreadyProcessedError: If the approval is not pending, or was
                decided by someone else while children were provisioned.
            EmptyApprovalError: If the approval lists no children.
            InvalidIdentifierError: If request_id or actor_id is not a UUID.
            StoreUnavailableError: If the approval cannot be loaded or
                finalized. A failed finalization first removes the
                accounts created by this run.
        """
        _require_uuid(request_id, "request_id")
        _require_uuid(actor_id, "actor_id")
        request = await self._load_pending(request_id)
        if not request.children:
            raise EmptyApprovalError(
                f"Family approval {request_id} has no children",
                details={"request_id": request_id},
            )

        logger.info(
            "approval_started",
            request_id=request_id,
            actor_id=actor_id,
            children=len(request.children),
        )

        result = ApprovalResult(request_id=request_id, status=ApprovalStatus.PENDING)
        completed: list[ChildOutcome] = []
        for child in request.children:
            outcome = await self._provision_to_completion(child, request.organization_id)
            if outcome.succeeded:
                completed.append(outcome)
                result.provisioned.append(outcome.account)
            else:
                result.failures.append(outcome.failure)

        if result.provisioned:
            try:
                await self._finalize(request, actor_id, admin_notes, result)
            except StoreUnavailableError as e:
                warnings = await self._release_all(request_id, completed)
                e.details.update(
                    request_id=request_id,
                    released=[o.account.username for o in completed],
                    rollback_warnings=[w.model_dump() for w in warnings],
                )
                raise
        else:
            logger.warning(
                "approval_left_pending",
                request_id=request_id,
                failed=result.failed_count,
            )

        for warning in result.rollback_warnings:
            logger.error(
                "rollback_incomplete",
                request_id=request_id,
                step=warning.step,
                resource_id=warning.resource_id,
                error=warning.error,
            )

        organization_name = await self._organization_name(request.organization_id)
        delivery = await self._dispatcher.send(request.parent, organization_name, result)
        result.notification_status = delivery.status.value

        logger.info(
            "approval_finished",
            request_id=request_id,
            status=result.status.value,
            approved=result.approved_count,
            failed=result.failed_count,
            notification=result.notification_status,
        )
        return result

    async def reject(
        self,
        request_id: str,
        actor_id: str,
        admin_notes: str | None = None,
    ) -> FamilyApprovalRequest:
        """Reject a pending family approval.

        Returns:
            The approval as it is after the rejection.

        Raises:
            ApprovalNotFoundError: If the approval does not exist.
            AlreadyProcessedError: If the approval is not pending.
            StoreUnavailableError: If the datastore cannot be reached.
        """
        _require_uuid(request_id, "request_id")
        _require_uuid(actor_id, "actor_id")
        request = await self._load_pending(request_id)
        rejected_at = self._clock()

        updated = await self._store.update_approval_status(
            request_id,
            ApprovalStatus.REJECTED,
            actor_id,
            rejected_at,
            admin_notes,
        )
        if not updated:
            raise AlreadyProcessedError(
                f"Family approval {request_id} was decided concurrently",
                details={"request_id": request_id},
            )

        logger.info("approval_rejected", request_id=request_id, actor_id=actor_id)
        return request.model_copy(
            update={
                "status": ApprovalStatus.REJECTED,
                "approved_by": actor_id,
                "approved_at": rejected_at,
                "admin_notes": admin_notes if admin_notes is not None else request.admin_notes,
            }
        )

    async def _provision_to_completion(self, child: ChildSpec, organization_id: str) -> ChildOutcome:
        """Provision a child, letting it reach a terminal state on cancellation."""
        task = asyncio.ensure_future(self._provisioner.provision(child, organization_id))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError as cancelled:
            logger.warning("approval_cancelled_mid_child", child_name=child.name)
            # Repeated cancellation must not interrupt the child either
            while not task.done():
                try:
                    await asyncio.shield(task)
                except asyncio.CancelledError:
                    continue
            raise cancelled

    async def _release_all(self, request_id: str, completed: list[ChildOutcome]) -> list[RollbackWarning]:
        """Remove the accounts of a run whose approval could not be finalized."""
        logger.error(
            "approval_finalize_failed",
            request_id=request_id,
            usernames=[o.account.username for o in completed],
        )
        warnings: list[RollbackWarning] = []
        for outcome in reversed(completed):
            warnings.extend(await self._provisioner.release(outcome.child, outcome.account))
        for warning in warnings:
            logger.error(
                "rollback_incomplete",
                request_id=request_id,
                step=warning.step,
                resource_id=warning.resource_id,
                error=warning.error,
            )
        return warnings

    async def _finalize(
        self,
        request: FamilyApprovalRequest,
        actor_id: str,
        admin_notes: str | None,
        result: ApprovalResult,
    ) -> None:
        updated = await self._store.update_approval_status(
            request.id,
            ApprovalStatus.APPROVED,
            actor_id,
            self._clock(),
            admin_notes,
        )
        if not updated:
            # Accounts stay valid; the approval was decided by someone else
            logger.error(
                "approval_decided_concurrently",
                request_id=request.id,
                usernames=[a.username for a in result.provisioned],
            )
            raise AlreadyProcessedError(
                f"Family approval {request.id} was decided while accounts were created",
                details={
                    "request_id": request.id,
                    "usernames": [a.username for a in result.provisioned],
                },
            )
        result.status = ApprovalStatus.APPROVED

    async def _organization_name(self, organization_id: str) -> str:
        fallback = self._settings.default_organization_name
        try:
            name = await self._store.get_organization_name(organization_id)
        except StoreUnavailableError:
            logger.warning("organization_lookup_failed", organization_id=organization_id)
            return fallback
        return name or fallback


def create_approval_saga(
    store: FamilyStore,
    identity_provider: IdentityProvider,
    email_channel: BaseEmailChannel,
    settings: Settings,
) -> ApprovalSaga:
    """Wire an ApprovalSaga from its collaborators and settings."""
    binder = IdentityBinder(identity_provider, store, settings.identity.child_email_domain)
    allocator = UsernameAllocator(
        binder,
        max_attempts=settings.provisioning.max_username_attempts,
        fallback=settings.provisioning.fallback_username,
    )
    provisioner = ChildAccountProvisioner(
        allocator,
        binder,
        ProfileWriter(store),
        DomainRecordWriter(store),
        settings.provisioning,
    )
    dispatcher = NotificationDispatcher(email_channel, settings.email)
    return ApprovalSaga(store, provisioner, dispatcher, settings.provisioning)
