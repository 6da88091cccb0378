"""
Shared Jinja2 environment for email bodies, with custom filters.
All modules that render mail should import render_template from here.
"""
from datetime import date, datetime

from jinja2 import Environment, FileSystemLoader, select_autoescape

from tdms.config import TEMPLATES_DIR, MAIL_SIGNATURE, CLIENT_URL

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)


def format_date(value, format_str='%Y-%m-%d'):
    """Format a date/datetime object or string to date string."""
    if value is None:
        return '-'
    if isinstance(value, (date, datetime)):
        return value.strftime(format_str)
    value = str(value)
    return value[:10] if len(value) >= 10 else value


def month_name(month) -> str:
    """1 -> January; out-of-range values are returned unchanged as text."""
    try:
        index = int(month)
    except (TypeError, ValueError):
        return str(month)
    if 1 <= index <= 12:
        return MONTH_NAMES[index - 1]
    return str(month)


# Register custom filters
env.filters['format_date'] = format_date
env.filters['month_name'] = month_name


def render_template(template_name: str, /, **context) -> str:
    """Render a template with the mail signature and client URL available."""
    context.setdefault('signature', MAIL_SIGNATURE)
    context.setdefault('client_url', CLIENT_URL)
    return env.get_template(template_name).render(**context)
