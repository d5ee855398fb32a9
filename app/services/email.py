import os
import asyncio
import logging
from datetime import datetime
from jinja2 import Environment, FileSystemLoader, select_autoescape
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, To

from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    pass


class EmailService:
    _template_env = None

    @classmethod
    def _get_template_env(cls):
        """
        Initialize Jinja2 template environment with inheritance support
        """
        if cls._template_env is None:
            template_dir = os.path.join(
                os.path.dirname(os.path.abspath(__file__)),
                '..',
                'templates'
            )

            cls._template_env = Environment(
                loader=FileSystemLoader(template_dir),
                autoescape=select_autoescape(['html'])
            )
        return cls._template_env

    @classmethod
    def render_template(cls, template_name: str, context: dict) -> str:
        """
        Render an email template

        :param template_name: Name of the template file
        :param context: Dictionary of template variables
        :return: Rendered HTML template
        """
        default_context = {
            'company_name': settings.EMAILS_FROM_NAME,
            'current_year': datetime.utcnow().year,
            **context
        }
        try:
            template = cls._get_template_env().get_template(template_name)
            return template.render(**default_context)
        except Exception as e:
            logger.error(f"Error rendering email template {template_name}: {e}")
            raise

    @classmethod
    def deliver(cls, to_email: str, subject: str, template_name: str, template_context: dict) -> None:
        html_content = cls.render_template(template_name, template_context)

        message = Mail(
            from_email=f"{settings.EMAILS_FROM_NAME} <{settings.EMAILS_FROM_EMAIL}>",
            to_emails=To(to_email),
            subject=subject,
            html_content=html_content
        )

        response = SendGridAPIClient(settings.SENDGRID_API_KEY).send(message)
        if response.status_code not in (200, 201, 202):
            raise EmailDeliveryError(f"SendGrid API error: {response.status_code} - {response.body}")

        logger.info(f"Email sent successfully to {to_email} via SendGrid")

    @classmethod
    async def send_email(cls, to_email: str, subject: str, template_name: str, template_context: dict) -> bool:
        """Send one email off the event loop. Returns False when sending is disabled."""
        if not settings.EMAILS_ENABLED:
            logger.info(f"Emails disabled; skipping '{subject}' to {to_email}")
            return False
        await asyncio.to_thread(cls.deliver, to_email, subject, template_name, template_context)
        return True
