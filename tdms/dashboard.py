"""
Dashboard data layer.

Each administrator tier has a dashboard made of panels. A refresh fetches
every panel concurrently for the current filters, reconciles the responses
and stores them in `state`. Panels fail independently: a failed request
resets only that panel to its empty default. A refresh started later makes
every response of earlier refreshes stale, and stale responses are dropped.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Callable, Dict, Optional

import requests

from tdms.config import (
    ALL_SCOPE, API_BASE_URL, ROLE_MUNICIPAL_ADMIN, ROLE_PROVINCIAL_ADMIN, ROLE_REGIONAL_ADMIN,
)
from tdms.reconcile import (
    CHECK_IN_FIELDS, MONTHLY_METRIC_FIELDS, densify_months, sort_nationality_counts,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_MAX_WORKERS = 6


@dataclass
class AuthSession:
    """Authenticated identity handed to every dashboard explicitly."""
    token: str
    user: dict
    base_url: str = API_BASE_URL

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}

    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    @classmethod
    def login(cls, email: str, password: str, base_url: str = API_BASE_URL,
              http: requests.Session = None, timeout: int = DEFAULT_TIMEOUT) -> "AuthSession":
        """POST /auth/login and wrap the issued token. Raises requests.HTTPError on rejection."""
        http = http or requests.Session()
        response = http.post(
            f"{base_url.rstrip('/')}/auth/login",
            json={"email": email, "password": password},
            timeout=timeout,
        )
        response.raise_for_status()
        body = response.json()
        return cls(token=body["token"], user=body["user"], base_url=base_url)


@dataclass
class DashboardFilters:
    year: int = field(default_factory=lambda: date.today().year)
    month: int = field(default_factory=lambda: date.today().month)
    region: Optional[str] = None
    province: Optional[str] = None
    municipality: Optional[str] = None

    def scope_params(self) -> dict:
        """Area filters worth sending; ALL and empty values are left out."""
        params = {}
        for level in ('region', 'province', 'municipality'):
            value = getattr(self, level)
            if value and str(value).strip().upper() != ALL_SCOPE:
                params[level] = value
        return params


# ── Panels ───────────────────────────────────────────────────────────

def _year_params(filters: DashboardFilters) -> dict:
    return {'year': filters.year, **filters.scope_params()}


def _month_params(filters: DashboardFilters) -> dict:
    return {'year': filters.year, 'month': filters.month, **filters.scope_params()}


def _no_params(filters: DashboardFilters) -> dict:
    return {}


def _as_list(data) -> list:
    return data if isinstance(data, list) else []


def _municipality_options(data) -> list:
    names = data.get('municipalities', []) if isinstance(data, dict) else []
    return [ALL_SCOPE] + [name for name in names if name]


def _province_options(admins) -> list:
    provinces = sorted({str(admin.get('province')) for admin in _as_list(admins)
                        if isinstance(admin, dict) and admin.get('province')})
    return [ALL_SCOPE] + provinces


def _densify_checkins(rows) -> list:
    return densify_months(_as_list(rows), CHECK_IN_FIELDS)


def _densify_metrics(rows) -> list:
    return densify_months(_as_list(rows), MONTHLY_METRIC_FIELDS)


def _sorted_nationalities(rows) -> list:
    return sort_nationality_counts(_as_list(rows))


@dataclass(frozen=True)
class Panel:
    """One independently fetched slice of dashboard state."""
    name: str
    path: str
    params: Callable[[DashboardFilters], dict]
    default: Callable[[], Any] = list
    transform: Callable[[Any], Any] = _as_list


MONTHLY_CHECKINS = Panel('monthly_checkins', '/admin/monthly-checkins', _year_params, transform=_densify_checkins)
MONTHLY_METRICS = Panel('monthly_metrics', '/admin/monthly-metrics', _year_params, transform=_densify_metrics)
NATIONALITY_COUNTS = Panel('nationality_counts', '/admin/nationality-counts', _month_params,
                           transform=_sorted_nationalities)
GUEST_DEMOGRAPHICS = Panel('guest_demographics', '/admin/guest-demographics', _month_params)


class Dashboard:
    """Base dashboard: filter state, concurrent panel fetches, generation tracking."""

    panels = (MONTHLY_CHECKINS, MONTHLY_METRICS, NATIONALITY_COUNTS, GUEST_DEMOGRAPHICS)

    def __init__(self, session: AuthSession, http: requests.Session = None,
                 max_workers: int = DEFAULT_MAX_WORKERS, timeout: int = DEFAULT_TIMEOUT):
        self.session = session
        self.timeout = timeout
        self._http = http or requests.Session()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="dashboard")
        self._lock = threading.Lock()
        self._generation = 0
        self.filters = DashboardFilters()
        self.state: Dict[str, Any] = {panel.name: panel.default() for panel in self.panels}
        self.errors: Dict[str, str] = {}

    @property
    def generation(self) -> int:
        return self._generation

    def invalidate(self) -> int:
        """Make every in-flight response stale without fetching anything."""
        with self._lock:
            self._generation += 1
            return self._generation

    def set_filters(self, **changes) -> int:
        """Update some filter fields and refresh."""
        return self.refresh(replace(self.filters, **changes))

    def refresh(self, filters: DashboardFilters = None) -> int:
        """
        Fetch every panel for the given filters and apply the results.
        Returns the generation this refresh ran as; if a newer refresh started
        meanwhile, none of this refresh's responses were applied.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            if filters is not None:
                self.filters = filters
            current = self.filters

        futures = {
            self._executor.submit(self._fetch, panel, current): panel
            for panel in self.panels
        }
        for future in as_completed(futures):
            panel = futures[future]
            try:
                value = future.result()
            except Exception as e:
                logger.error(f"Panel {panel.name} failed: {e}")
                self._apply(generation, panel, panel.default(), error=str(e))
            else:
                self._apply(generation, panel, value)
        return generation

    def _fetch(self, panel: Panel, filters: DashboardFilters):
        response = self._http.get(
            self.session.url(panel.path),
            params=panel.params(filters),
            headers=self.session.headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return panel.transform(response.json())

    def _apply(self, generation: int, panel: Panel, value, error: str = None) -> bool:
        with self._lock:
            if generation != self._generation:
                logger.debug(f"Discarding stale {panel.name} response (generation {generation})")
                return False
            self.state[panel.name] = value
            if error:
                self.errors[panel.name] = error
            else:
                self.errors.pop(panel.name, None)
            return True

    def close(self):
        self._executor.shutdown(wait=False)
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class MunicipalDashboard(Dashboard):
    """Municipal admin: one municipality, no area filters."""

    panels = Dashboard.panels + (
        Panel('nationality_counts_by_establishment', '/admin/nationality-counts-by-establishment', _month_params),
    )


class ProvincialDashboard(Dashboard):
    """Provincial admin: whole province or one municipality of it."""

    panels = Dashboard.panels + (
        Panel('municipalities', '/admin/municipalities', _no_params,
              default=lambda: [ALL_SCOPE], transform=_municipality_options),
        Panel('municipality_metrics', '/provincial-admin/municipality-metrics',
              lambda filters: {'year': filters.year, 'month': filters.month}),
    )

    def select_municipality(self, municipality: str) -> int:
        return self.set_filters(municipality=municipality)


class RegionalDashboard(Dashboard):
    """Regional admin: whole region or one province of it."""

    panels = (
        Panel('provinces', '/provincial-admin/regional/provincial-admins', _no_params,
              default=lambda: [ALL_SCOPE], transform=_province_options),
        Panel('monthly_checkins', '/provincial-admin/regional/monthly-checkins', _year_params,
              transform=_densify_checkins),
        Panel('monthly_metrics', '/provincial-admin/regional/monthly-metrics', _year_params,
              transform=_densify_metrics),
        GUEST_DEMOGRAPHICS,
        Panel('nationality_counts', '/provincial-admin/regional/nationality-counts', _month_params,
              transform=_sorted_nationalities),
        Panel('province_metrics', '/provincial-admin/regional/province-metrics',
              lambda filters: {'year': filters.year, 'month': filters.month}),
        Panel('overview', '/provincial-admin/regional/overview',
              lambda filters: {'year': filters.year, 'month': filters.month},
              default=dict, transform=lambda data: data if isinstance(data, dict) else {}),
    )

    def select_province(self, province: str) -> int:
        return self.set_filters(province=province, municipality=None)


DASHBOARDS = {
    ROLE_MUNICIPAL_ADMIN: MunicipalDashboard,
    ROLE_PROVINCIAL_ADMIN: ProvincialDashboard,
    ROLE_REGIONAL_ADMIN: RegionalDashboard,
}


def dashboard_for(session: AuthSession, **kwargs) -> Dashboard:
    """The dashboard matching the session user's tier."""
    role = (session.user or {}).get('role')
    if role not in DASHBOARDS:
        raise ValueError(f"No dashboard for role: {role}")
    return DASHBOARDS[role](session, **kwargs)
