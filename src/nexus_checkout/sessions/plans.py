"""Plan catalogue. Prices are server-side only."""

PLAN_PRICES_CENTS: dict[str, int] = {
    "profissional": 19700,
    "pro_ia": 34700,
}

PLAN_NAMES: dict[str, str] = {
    "profissional": "Profissional",
    "pro_ia": "PRO + IA",
}

DEFAULT_PLAN = "profissional"


def amount_for_plan(plan_id: str) -> int:
    """Price in cents for a known plan; raises KeyError otherwise."""
    return PLAN_PRICES_CENTS[plan_id]


def plan_name(plan_id: str | None) -> str:
    return PLAN_NAMES.get(plan_id or DEFAULT_PLAN, PLAN_NAMES[DEFAULT_PLAN])
