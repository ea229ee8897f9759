"""Email bodies rendered from the Jinja2 templates beside this module."""

from jinja2 import Environment, PackageLoader, select_autoescape

from nexus_checkout.sessions.plans import plan_name

VERIFICATION_SUBJECT = "Confirme seu e-mail — Nexus Automações"
ACCESS_SUBJECT = "Seu acesso ao sistema — Nexus Automações"

_env = Environment(
    loader=PackageLoader("nexus_checkout.notifications", "templates"),
    autoescape=select_autoescape(["html"]),
)


def _common(settings, original_to: str, test_mode: bool) -> dict:
    return {
        "brand": settings.email_from_name,
        "logo_url": f"{settings.site_base}/nexus-logo.jpg" if settings.public_site_url else None,
        "whatsapp": settings.support_whatsapp,
        "test_mode": test_mode,
        "original_to": original_to,
    }


def verification_link(settings, raw_token: str) -> str:
    return f"{settings.site_base}/verificar-email?token={raw_token}"


def access_link(settings) -> str:
    return f"{settings.auth_base}/auth"


def render_verification_email(
    settings, *, to: str, owner_name: str, plan_id: str, raw_token: str, test_mode: bool = False,
) -> str:
    return _env.get_template("verification.html").render(
        header_subtitle="Confirmação de e-mail",
        owner_name=owner_name,
        plan_name=plan_name(plan_id),
        link=verification_link(settings, raw_token),
        **_common(settings, to, test_mode),
    )


def render_access_email(
    settings, *, to: str, owner_name: str | None, test_mode: bool = False,
) -> str:
    return _env.get_template("access.html").render(
        header_subtitle="Pagamento confirmado — acesso ao sistema",
        owner_name=owner_name or "cliente",
        link=access_link(settings),
        **_common(settings, to, test_mode),
    )
