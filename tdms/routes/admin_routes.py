"""
Admin routes: scoped metrics for the municipal and provincial dashboards,
establishment approval and the submission list.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from tdms import accounts, metrics
from tdms.config import DEFAULT_PAGE_SIZE
from tdms.dependencies import (
    json_response, parse_month, parse_year, read_json, requested_scope,
    require_any_admin, require_area_admin, require_auth,
)
from tdms.reminders import notify_account_approved, notify_account_declined
from tdms.scope import resolve_scope

logger = logging.getLogger(__name__)

router = APIRouter()


def _failure(action: str, error: Exception):
    logger.error(f"Failed to {action}: {error}")
    return json_response({"error": f"Failed to {action}"}, status_code=500)


def _not_found():
    return json_response({"error": "User not found"}, status_code=404)


# ── Metrics ──────────────────────────────────────────────────────────

@router.get("/monthly-checkins")
async def monthly_checkins(request: Request, year: Optional[str] = Query(None),
                           user: dict = Depends(require_auth)):
    """Check-ins per month (months without submissions are omitted)."""
    scope = resolve_scope(user, requested_scope(request))
    try:
        return json_response(metrics.monthly_checkins(parse_year(year), scope))
    except Exception as e:
        return _failure("fetch monthly check-ins", e)


@router.get("/monthly-metrics")
async def monthly_metrics(request: Request, year: Optional[str] = Query(None),
                          user: dict = Depends(require_auth)):
    scope = resolve_scope(user, requested_scope(request))
    try:
        return json_response(metrics.monthly_metrics(parse_year(year), scope))
    except Exception as e:
        return _failure("fetch monthly metrics", e)


@router.get("/nationality-counts")
async def nationality_counts(request: Request, year: Optional[str] = Query(None),
                             month: Optional[str] = Query(None),
                             user: dict = Depends(require_auth)):
    scope = resolve_scope(user, requested_scope(request))
    try:
        rows = metrics.nationality_counts(parse_year(year), parse_month(month, default_current=True), scope)
        return json_response(rows)
    except Exception as e:
        return _failure("fetch nationality counts", e)


@router.get("/nationality-counts-by-establishment")
async def nationality_counts_by_establishment(request: Request, year: Optional[str] = Query(None),
                                              month: Optional[str] = Query(None),
                                              user: dict = Depends(require_any_admin)):
    scope = resolve_scope(user, requested_scope(request))
    try:
        rows = metrics.nationality_counts_by_establishment(
            parse_year(year), parse_month(month, default_current=True), scope
        )
        return json_response(rows)
    except Exception as e:
        return _failure("fetch nationality counts by establishment", e)


@router.get("/guest-demographics")
async def guest_demographics(request: Request, year: Optional[str] = Query(None),
                             month: Optional[str] = Query(None),
                             user: dict = Depends(require_auth)):
    scope = resolve_scope(user, requested_scope(request))
    try:
        rows = metrics.guest_demographics(parse_year(year), parse_month(month, default_current=True), scope)
        return json_response(rows)
    except Exception as e:
        return _failure("fetch guest demographics", e)


@router.get("/municipalities")
async def municipalities(user: dict = Depends(require_area_admin)):
    """Municipalities of the admin's own province."""
    try:
        names = metrics.list_municipalities(user.get('region'), user.get('province'))
        return json_response({"municipalities": names})
    except Exception as e:
        return _failure("fetch municipalities", e)


# ── Establishments ───────────────────────────────────────────────────

@router.get("/users")
async def list_users(request: Request, user: dict = Depends(require_any_admin)):
    scope = resolve_scope(user, requested_scope(request))
    try:
        return json_response(accounts.list_establishments(scope))
    except Exception as e:
        return _failure("fetch users", e)


@router.get("/pending-users")
async def pending_users(request: Request, user: dict = Depends(require_any_admin)):
    scope = resolve_scope(user, requested_scope(request))
    try:
        return json_response(accounts.list_establishments(scope, pending_only=True))
    except Exception as e:
        return _failure("fetch pending users", e)


@router.put("/approve/{user_id}")
async def approve_user(user_id: int, user: dict = Depends(require_any_admin)):
    target = accounts.find_establishment(user_id, resolve_scope(user))
    if not target:
        return _not_found()

    try:
        accounts.approve_user(user_id)
    except Exception as e:
        return _failure("approve user", e)

    notify_account_approved(target)
    logger.info(f"User {user_id} approved by {user['user_id']}")
    return json_response({"message": "User approved successfully"})


@router.put("/decline/{user_id}")
async def decline_user(user_id: int, request: Request, user: dict = Depends(require_any_admin)):
    """Decline a registration. The account and everything it owns is deleted."""
    target = accounts.find_establishment(user_id, resolve_scope(user))
    if not target:
        return _not_found()

    body = await read_json(request)
    reason = (body.get('reason') or body.get('message') or '').strip() or None

    notify_account_declined(target, reason)
    try:
        accounts.decline_user(user_id)
    except Exception as e:
        return _failure("decline user", e)

    logger.info(f"User {user_id} declined by {user['user_id']}")
    return json_response({"message": "User declined and removed successfully"})


@router.put("/deactivate/{user_id}")
async def deactivate_user(user_id: int, user: dict = Depends(require_any_admin)):
    if not accounts.find_establishment(user_id, resolve_scope(user)):
        return _not_found()

    try:
        accounts.deactivate_user(user_id)
    except Exception as e:
        return _failure("deactivate user", e)

    logger.info(f"User {user_id} deactivated by {user['user_id']}")
    return json_response({"message": "User deactivated successfully"})


@router.put("/update-accommodation/{user_id}")
async def update_accommodation(user_id: int, request: Request, user: dict = Depends(require_any_admin)):
    body = await read_json(request)
    accommodation_type = (body.get('accommodation_type') or '').strip()
    if not accommodation_type:
        return json_response({"error": "accommodation_type is required"}, status_code=400)

    if not accounts.find_establishment(user_id, resolve_scope(user)):
        return _not_found()

    try:
        accounts.update_accommodation(user_id, accommodation_type)
    except Exception as e:
        return _failure("update accommodation type", e)

    return json_response({
        "message": "Accommodation type updated successfully",
        "accommodation_type": accommodation_type,
        "accommodation_code": accounts.get_accommodation_code(accommodation_type),
    })


# ── Submissions ──────────────────────────────────────────────────────

@router.get("/submissions")
async def submissions(
    request: Request,
    month: Optional[str] = Query(None),
    year: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    penaltyStatus: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    user: dict = Depends(require_any_admin),
):
    scope = resolve_scope(user, requested_scope(request))
    try:
        result = accounts.list_submissions(
            scope,
            month=parse_month(month),
            year=parse_year(year) if year else None,
            status=status,
            penalty_status=penaltyStatus,
            search=search,
            page=page,
            limit=limit,
        )
        return json_response(result)
    except Exception as e:
        return _failure("fetch submissions", e)


# ── Settings / profile ───────────────────────────────────────────────

@router.get("/auto-approval")
async def get_auto_approval(user: dict = Depends(require_any_admin)):
    try:
        return json_response({"enabled": accounts.get_auto_approval()})
    except Exception as e:
        return _failure("fetch auto-approval setting", e)


@router.post("/auto-approval")
async def set_auto_approval(request: Request, user: dict = Depends(require_any_admin)):
    body = await read_json(request)
    if not isinstance(body.get('enabled'), bool):
        return json_response({"error": "enabled must be true or false"}, status_code=400)

    try:
        enabled = accounts.set_auto_approval(body['enabled'])
    except Exception as e:
        return _failure("update auto-approval setting", e)

    logger.info(f"Auto-approval set to {enabled} by {user['user_id']}")
    return json_response({"enabled": enabled})


@router.get("/me")
async def me(user: dict = Depends(require_any_admin)):
    """The admin's own profile, including the assigned area."""
    try:
        profile = accounts.get_profile(user['user_id'])
    except Exception as e:
        return _failure("fetch profile", e)
    if not profile:
        return _not_found()
    return json_response(profile)
