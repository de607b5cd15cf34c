import smtplib
import threading
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from flask import current_app

from utils.log import get_logger

logger = get_logger(__name__)


def _mail_settings(config):
    return {
        "sender": config.get("EMAIL_ADDRESS"),
        "password": config.get("EMAIL_PASSWORD"),
        "server": config.get("MAIL_SERVER", "smtp.gmail.com"),
        "port": int(config.get("MAIL_PORT", 587)),
        "timeout": float(config.get("MAIL_TIMEOUT", 10)),
    }


def send_email(settings, to_email, subject, body):
    """Deliver one plain-text mail. Returns False instead of raising."""
    if not settings.get("sender"):
        logger.info("email.skipped reason=no_sender to=%s", to_email)
        return False
    try:
        msg = MIMEMultipart()
        msg['From'] = "CleanUp Connect <%s>" % settings["sender"]
        msg['To'] = to_email
        msg['Subject'] = subject
        msg.attach(MIMEText(body, 'plain'))

        server = smtplib.SMTP(settings["server"], settings["port"], timeout=settings["timeout"])
        try:
            server.starttls()
            server.login(settings["sender"], settings["password"] or "")
            server.send_message(msg)
        finally:
            server.quit()
    except Exception as e:
        logger.error("email.failed to=%s error=%s", to_email, e)
        return False
    logger.info("email.sent to=%s", to_email)
    return True


def report_assigned_message(report, team, app_url):
    subject = "New Waste Report #%s - %s Priority" % (report.id, report.severity.upper())
    body = (
        f"Hello {team.name},\n\n"
        f"A new waste report has been assigned to your team.\n\n"
        f"Report ID: {report.id}\n"
        f"Waste type: {report.waste_type}\n"
        f"Severity: {report.severity}\n"
        f"Location: {report.address or '%s, %s' % (report.latitude, report.longitude)}\n"
        f"Description: {report.description}\n\n"
        f"Open your queue: {app_url}/municipality\n\n"
        f"CleanUp Connect"
    )
    return subject, body


def notify_team_of_report(team, report):
    """Best-effort mail to the team inbox. Never raises."""
    try:
        if not team.contact_email:
            logger.info("notify.skipped reason=no_contact team=%s report=%s", team.id, report.id)
            return
        config = current_app.config
        settings = _mail_settings(config)
        subject, body = report_assigned_message(report, team, config.get("APP_URL", "http://localhost:3000"))
        if config.get("NOTIFY_SYNC"):
            send_email(settings, team.contact_email, subject, body)
        else:
            threading.Thread(
                target=send_email,
                args=(settings, team.contact_email, subject, body),
                daemon=True,
            ).start()
    except Exception:
        logger.exception("notify.failed team=%s report=%s", getattr(team, "id", None), getattr(report, "id", None))
