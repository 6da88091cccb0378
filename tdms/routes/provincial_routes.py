"""
Provincial and regional administrator routes.
Provincial admins manage the municipal admins of their province; regional
admins see every province of their region.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from tdms import accounts, metrics
from tdms.auth import hash_password
from tdms.config import REGIONAL_NATIONALITY_LIMIT
from tdms.dependencies import (
    json_response, parse_month, parse_year, read_json, requested_scope,
    require_provincial_admin, require_regional_admin,
)
from tdms.reconcile import CHECK_IN_FIELDS, MONTHLY_METRIC_FIELDS, densify_months
from tdms.scope import resolve_scope

logger = logging.getLogger(__name__)

router = APIRouter()

MUNICIPAL_ADMIN_REQUIRED_FIELDS = ('email', 'password', 'municipality', 'company_name', 'registered_owner')


def _failure(action: str, error: Exception):
    logger.error(f"Failed to {action}: {error}")
    return json_response({"error": f"Failed to {action}"}, status_code=500)


def _clean(value) -> str:
    return value.strip() if isinstance(value, str) else ''


# ── Provincial admin ─────────────────────────────────────────────────

@router.get("/municipal-admins")
async def municipal_admins(user: dict = Depends(require_provincial_admin)):
    try:
        return json_response(accounts.list_municipal_admins(user['region'], user['province']))
    except Exception as e:
        return _failure("fetch municipal admins", e)


@router.post("/add-municipal-admin")
async def add_municipal_admin(request: Request, user: dict = Depends(require_provincial_admin)):
    """Create an approved municipal admin inside the caller's province."""
    body = await read_json(request)
    missing = [field for field in MUNICIPAL_ADMIN_REQUIRED_FIELDS if not _clean(body.get(field))]
    if missing:
        return json_response({"error": f"Missing required fields: {', '.join(missing)}"}, status_code=400)

    email = _clean(body['email']).lower()
    try:
        if accounts.email_exists(email):
            return json_response({"error": "Email already exists"}, status_code=400)

        user_id = accounts.add_municipal_admin(
            region=user['region'],
            province=user['province'],
            email=email,
            password_hash=hash_password(body['password']),
            company_name=_clean(body['company_name']),
            registered_owner=_clean(body['registered_owner']),
            municipality=_clean(body['municipality']).upper(),
            phone_number=_clean(body.get('phone_number')) or None,
            barangay=_clean(body.get('barangay')).upper() or None,
        )
    except Exception as e:
        return _failure("add municipal admin", e)

    logger.info(f"Municipal admin {user_id} created by {user['user_id']}")
    return json_response({"message": "Municipal admin added successfully", "user_id": user_id}, status_code=201)


@router.get("/municipality-metrics")
async def municipality_metrics(year: Optional[str] = Query(None), month: Optional[str] = Query(None),
                               user: dict = Depends(require_provincial_admin)):
    """One month's figures per municipality of the province."""
    scope = resolve_scope(user)
    try:
        rows = metrics.municipality_metrics(
            scope['region'], scope['province'], parse_year(year), parse_month(month, default_current=True)
        )
        return json_response(rows)
    except Exception as e:
        return _failure("fetch municipality metrics", e)


# ── Regional admin ───────────────────────────────────────────────────

@router.get("/regional/provincial-admins")
async def provincial_admins(user: dict = Depends(require_regional_admin)):
    scope = resolve_scope(user)
    try:
        return json_response(accounts.list_provincial_admins(scope['region']))
    except Exception as e:
        return _failure("fetch provincial admins", e)


@router.get("/regional/province-metrics")
async def province_metrics(year: Optional[str] = Query(None), month: Optional[str] = Query(None),
                           user: dict = Depends(require_regional_admin)):
    scope = resolve_scope(user)
    try:
        rows = metrics.province_metrics(scope['region'], parse_year(year), parse_month(month, default_current=True))
        return json_response(rows)
    except Exception as e:
        return _failure("fetch province metrics", e)


@router.get("/regional/monthly-metrics")
async def regional_monthly_metrics(request: Request, year: Optional[str] = Query(None),
                                   user: dict = Depends(require_regional_admin)):
    """Twelve monthly rows for the region, or one province of it."""
    scope = resolve_scope(user, requested_scope(request))
    try:
        rows = metrics.monthly_metrics(parse_year(year), scope)
        return json_response(densify_months(rows, MONTHLY_METRIC_FIELDS))
    except Exception as e:
        return _failure("fetch regional monthly metrics", e)


@router.get("/regional/overview")
async def regional_overview(year: Optional[str] = Query(None), month: Optional[str] = Query(None),
                            user: dict = Depends(require_regional_admin)):
    scope = resolve_scope(user)
    year = parse_year(year)
    month = parse_month(month, default_current=True)
    try:
        overview = metrics.regional_overview(scope['region'], year, month)
    except Exception as e:
        return _failure("fetch regional overview", e)
    overview.update({'region': scope['region'], 'year': year, 'month': month})
    return json_response(overview)


@router.get("/regional/monthly-checkins")
async def regional_monthly_checkins(request: Request, year: Optional[str] = Query(None),
                                    user: dict = Depends(require_regional_admin)):
    """Check-ins per month counting only each establishment's latest submission."""
    scope = resolve_scope(user, requested_scope(request))
    try:
        rows = metrics.latest_monthly_checkins(parse_year(year), scope)
        return json_response(densify_months(rows, CHECK_IN_FIELDS))
    except Exception as e:
        return _failure("fetch regional monthly check-ins", e)


@router.get("/regional/nationality-counts")
async def regional_nationality_counts(request: Request, year: Optional[str] = Query(None),
                                      month: Optional[str] = Query(None),
                                      user: dict = Depends(require_regional_admin)):
    scope = resolve_scope(user, requested_scope(request))
    try:
        rows = metrics.nationality_counts(
            parse_year(year), parse_month(month, default_current=True), scope,
            limit=REGIONAL_NATIONALITY_LIMIT,
        )
        return json_response(rows)
    except Exception as e:
        return _failure("fetch regional nationality counts", e)
