"""
Outbound invitation email (Resend HTTP API).

Delivery is best effort: send_invitation() returns False instead of raising,
so an email outage never undoes an invitation that was already stored.

Environment variables
---------------------
RESEND_API_KEY      API key. When unset no email is sent (send returns False).
INVITE_FROM_EMAIL   Sender, default "Convite <onboarding@resend.dev>".
APP_BASE_URL        Fallback base URL for accept links when the request has
                    no Origin header.
"""

import html
import logging
import os
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
DEFAULT_FROM_EMAIL = "Convite <onboarding@resend.dev>"
DEFAULT_BASE_URL = "http://localhost:3000"

_SEND_TIMEOUT_SECONDS = 10.0

_ROLE_LABELS = {
    "owner": "Proprietário",
    "admin": "Administrador",
    "member": "Membro",
}


def build_accept_url(base_url: str, token: str) -> str:
    """Return the invite acceptance link for ``token``."""
    return f"{base_url.rstrip('/')}/invite/accept/{token}"


def render_invitation_html(company_name: str, role: str, accept_url: str, expiry_days: int = 7) -> str:
    """Render the invitation email body."""
    company = html.escape(company_name)
    role_label = _ROLE_LABELS.get(role, _ROLE_LABELS["member"])
    url = html.escape(accept_url, quote=True)
    return f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h1>Você foi convidado!</h1>
        <p>Você foi convidado para se juntar a <strong>{company}</strong> como <strong>{role_label}</strong>.</p>
        <div style="margin: 30px 0;">
          <a href="{url}" style="background-color: #3B82F6; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">
            Aceitar Convite
          </a>
        </div>
        <p style="color: #666; font-size: 14px;">
          Este convite expira em {expiry_days} dias. Se você não conseguir clicar no botão, copie e cole este link no seu navegador:
          <br><br>
          <code style="background-color: #f4f4f4; padding: 4px 8px; border-radius: 4px;">{url}</code>
        </p>
      </div>
    """


class InviteMailer:
    """Sends invitation emails through Resend. One instance per request."""

    def __init__(
        self,
        api_key: Optional[str],
        accept_base_url: str,
        from_address: str = DEFAULT_FROM_EMAIL,
        expiry_days: int = 7,
    ):
        self.api_key = api_key
        self.accept_base_url = accept_base_url
        self.from_address = from_address
        self.expiry_days = expiry_days

    @classmethod
    def from_env(cls, origin: Optional[str] = None, expiry_days: int = 7) -> "InviteMailer":
        """Build a mailer from environment variables and the request origin."""
        base_url = origin or os.getenv("APP_BASE_URL") or DEFAULT_BASE_URL
        return cls(
            api_key=os.getenv("RESEND_API_KEY") or None,
            accept_base_url=base_url,
            from_address=os.getenv("INVITE_FROM_EMAIL") or DEFAULT_FROM_EMAIL,
            expiry_days=expiry_days,
        )

    def send_invitation(self, to_email: str, token: str, company_name: str, role: str) -> bool:
        """
        Send one invitation email.

        Returns:
            True if Resend accepted the message, False on any failure
            (missing key, HTTP error, timeout).
        """
        if not self.api_key:
            logger.warning("RESEND_API_KEY not configured, skipping invitation email to %s", to_email)
            return False

        accept_url = build_accept_url(self.accept_base_url, token)
        payload = {
            "from": self.from_address,
            "to": [to_email],
            "subject": f"Convite para {company_name}",
            "html": render_invitation_html(company_name, role, accept_url, self.expiry_days),
        }

        try:
            response = httpx.post(
                RESEND_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=_SEND_TIMEOUT_SECONDS,
            )
        except Exception as e:
            logger.error(f"Error sending invitation email to {to_email}: {e}")
            return False

        if response.status_code >= 400:
            logger.error(
                "Failed to send invitation email to %s: %s %s",
                to_email,
                response.status_code,
                response.text,
            )
            return False

        logger.info("Invitation email sent to %s", to_email)
        return True
