"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc, to_local, parse_iso, parse_due_date, business_year
from utils.actor_context import (
    get_current_user_id,
    get_current_company_id,
    get_current_user_name,
    set_actor,
    clear_actor,
    actor_context,
)
from utils.money import round_gnf, format_gnf
