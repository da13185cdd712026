# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Family approval API endpoints.

This module provides the administrator actions on family registrations:
- POST /approve - Create the children's accounts and approve the request
- POST /reject - Reject the request

Example:
    POST /api/v1/family-approvals/approve
    Body:
        {"requestId": "6f0c...", "actorId": "a1b2...", "adminNotes": "Welcome!"}

    Response (200, or 424 when some children failed):
        {
            "requestId": "6f0c...",
            "approvedCount": 2,
            "failedChildren": [{"name": "Sam", "reason": "Age must be ..."}],
            "requestStatus": "approved",
            "studentsCreated": [...],
            "notificationStatus": "sent"
        }
"""

import logging

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse

from src.api.dependencies import Saga
from src.domains.family_approval import (
    AlreadyProcessedError,
    ApprovalNotFoundError,
    EmptyApprovalError,
    FamilyApprovalError,
    InvalidIdentifierError,
    ProviderUnavailableError,
    StoreUnavailableError,
)
from src.models.family_approval import (
    ApproveFamilyRequest,
    ApproveFamilyResponse,
    RejectFamilyRequest,
    RejectFamilyResponse,
)
from src.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_http_error(error: FamilyApprovalError) -> HTTPException:
    """Map a request-level domain error to an HTTP error."""
    if isinstance(error, ApprovalNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, AlreadyProcessedError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(error, (EmptyApprovalError, InvalidIdentifierError)):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, (StoreUnavailableError, ProviderUnavailableError)):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    return HTTPException(
        status_code=status_code,
        detail={"error": error.error_code, "message": error.message},
    )


@router.post(
    "/approve",
    response_model=ApproveFamilyResponse,
    status_code=status.HTTP_200_OK,
    summary="Approve a family registration",
    description="""
    Creates a student account (login identity, profile and student record)
    for every child of a pending family registration, then approves it.

    Children are processed one by one. A child that fails is rolled back
    and listed in failedChildren; the others are still created. The
    registration is approved when at least one account was created and
    stays pending otherwise, so it can be retried.
    """,
    responses={
        200: {"description": "All children provisioned", "model": ApproveFamilyResponse},
        400: {"description": "Registration has no children, or an ID is not a UUID"},
        404: {"description": "Registration not found"},
        409: {"description": "Registration is not pending"},
        424: {"description": "Some children failed", "model": ApproveFamilyResponse},
        503: {"description": "Datastore or identity provider unavailable, nothing changed"},
    },
)
async def approve_family(body: ApproveFamilyRequest, saga: Saga) -> ApproveFamilyResponse:
    """Approve a family registration.

    Args:
        body: Approval request.
        saga: Approval saga.

    Returns:
        ApproveFamilyResponse; sent with 424 when any child failed.

    Raises:
        HTTPException: On request-level failures.
    """
    request_id, actor_id = str(body.request_id), str(body.actor_id)
    bind_context(approval_id=request_id, actor_id=actor_id)
    try:
        logger.info("Approve request received: %s by %s", request_id, actor_id)

        try:
            result = await saga.run(request_id, actor_id, body.admin_notes)
        except FamilyApprovalError as e:
            logger.warning("Approve request %s failed: %s", request_id, e.message)
            raise _to_http_error(e)

        response = ApproveFamilyResponse.from_result(result)
        if result.has_failures:
            logger.warning(
                "Approve request %s partially failed: %d created, %d failed",
                request_id,
                result.approved_count,
                result.failed_count,
            )
            return JSONResponse(
                status_code=status.HTTP_424_FAILED_DEPENDENCY,
                content=response.model_dump(by_alias=True, mode="json"),
            )

        return response
    finally:
        clear_context()


@router.post(
    "/reject",
    response_model=RejectFamilyResponse,
    status_code=status.HTTP_200_OK,
    summary="Reject a family registration",
    responses={
        404: {"description": "Registration not found"},
        409: {"description": "Registration is not pending"},
        503: {"description": "Datastore unavailable"},
    },
)
async def reject_family(body: RejectFamilyRequest, saga: Saga) -> RejectFamilyResponse:
    """Reject a pending family registration.

    Raises:
        HTTPException: If the registration cannot be rejected.
    """
    request_id, actor_id = str(body.request_id), str(body.actor_id)
    bind_context(approval_id=request_id, actor_id=actor_id)
    try:
        try:
            request = await saga.reject(request_id, actor_id, body.admin_notes)
        except FamilyApprovalError as e:
            logger.warning("Reject request %s failed: %s", request_id, e.message)
            raise _to_http_error(e)

        return RejectFamilyResponse(
            request_id=request.id,
            request_status=request.status,
            rejected_at=request.approved_at,
        )
    finally:
        clear_context()
