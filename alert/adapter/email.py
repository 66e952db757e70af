"""이메일(SMTP) 알림 채널"""
import asyncio
import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from alert.adapter.base import BaseAlertChannel
from alert.exception import AlertSendError
from alert.model import AlertMessage
from settings.model import EmailAlertConfig

logger = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465


def build_email_subject(message: AlertMessage) -> str:
    return f"QueryPush Failure for {message.job_name} Query"


def build_email_html(message: AlertMessage) -> str:
    """알림 HTML 본문 (사용자 입력 값은 모두 이스케이프)"""
    e = html.escape
    stack_section = ""
    if message.stack_trace:
        stack_section = f"""
        <h4>Stack Trace</h4>
        <div class="code">{e(message.stack_trace)}</div>"""

    return f"""<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 20px; }}
        .header {{ background-color: #dc3545; color: white; padding: 15px; border-radius: 5px; margin-bottom: 20px; }}
        .section {{ margin-bottom: 20px; }}
        .label {{ font-weight: bold; color: #495057; }}
        .code {{ background-color: #f8f9fa; border: 1px solid #dee2e6; padding: 10px; border-radius: 5px; font-family: monospace; white-space: pre-wrap; }}
        .error {{ background-color: #f8d7da; border: 1px solid #f5c6cb; color: #721c24; padding: 10px; border-radius: 5px; }}
        .details {{ background-color: #e2e3e5; padding: 10px; border-radius: 5px; }}
    </style>
</head>
<body>
    <div class="header">
        <h2>&#128680; QueryPush Failure: {e(message.job_name)}</h2>
    </div>

    <div class="section">
        <div class="details">
            <p><span class="label">Database:</span> {e(message.database)}</p>
            <p><span class="label">Endpoint:</span> {e(message.endpoint)}</p>
            <p><span class="label">Schedule:</span> {e(message.cron)}</p>
            <p><span class="label">Failure Time:</span> {message.occurred_at:%Y-%m-%d %H:%M:%S}</p>
        </div>
    </div>

    <div class="section">
        <h3>Query</h3>
        <div class="code">{e(message.query_text)}</div>
    </div>

    <div class="section">
        <h3>Exception Details</h3>
        <div class="error">
            <p><span class="label">Type:</span> {e(message.error_type)}</p>
            <p><span class="label">Message:</span> {e(message.error_message)}</p>
        </div>{stack_section}
    </div>
</body>
</html>"""


class EmailAlertChannel(BaseAlertChannel):
    """SMTP 메일 전송 (smtplib을 워커 스레드에서 실행)"""

    name = "email"

    def __init__(self, config: EmailAlertConfig):
        self._config = config

    @property
    def cooldown_minutes(self) -> int:
        return self._config.alert_cooldown_minutes

    def build_mime(self, message: AlertMessage) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = build_email_subject(message)
        msg['From'] = self._config.from_address
        msg['To'] = self._config.to_address
        msg.attach(MIMEText(build_email_html(message), 'html', 'utf-8'))
        return msg

    def _deliver(self, msg: MIMEMultipart) -> None:
        cfg = self._config
        if cfg.use_ssl and cfg.smtp_port == IMPLICIT_TLS_PORT:
            server = smtplib.SMTP_SSL(cfg.smtp_host, cfg.smtp_port, timeout=cfg.timeout_seconds)
        else:
            server = smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.timeout_seconds)

        with server:
            if cfg.use_ssl and cfg.smtp_port != IMPLICIT_TLS_PORT:
                server.starttls()
            if cfg.username:
                server.login(cfg.username, cfg.password)
            server.send_message(msg)

    async def send(self, message: AlertMessage) -> None:
        logger.info(f"Sending email alert for query '{message.job_name}' to {self._config.to_address}")
        msg = self.build_mime(message)

        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise AlertSendError(
                self.name,
                message.job_name,
                f"Failed to send email alert to {self._config.to_address}: {e}",
            ) from e
