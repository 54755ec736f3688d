# taxi_backend\notifications\email_dispatcher.py
# Notification Dispatcher: Emails generated reports as attachments over SMTP.
# Missing credentials disable sending; an authentication failure triggers one reconnect and one retry.

import os
import ssl
import smtplib
import logging
from email.message import EmailMessage
from email.utils import make_msgid

from taxi_backend.config import load_email_settings
from taxi_backend.logic.dates import local_now, format_generated_at
from taxi_backend.logic.report_builder import XLSX_MIMETYPE

logger = logging.getLogger("EmailDispatcher")

NOT_CONFIGURED_MESSAGE = "Email não configurado. Configure as variáveis EMAIL_USER e EMAIL_PASS no arquivo .env"
APP_PASSWORD_HINT = (
    "Para Gmail, você precisa usar uma SENHA DE APLICATIVO, não a senha normal. "
    "Veja: https://support.google.com/accounts/answer/185833"
)
REPORT_SUBJECT = 'Relatório de Solicitações de Táxi'


class EmailNotConfiguredError(RuntimeError):
    """Raised on any send attempt while SMTP credentials are missing"""


class EmailAuthenticationError(RuntimeError):
    """Raised when sending still fails after the reconnect-and-retry"""


REPORT_BODY = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333;">Relatório de Solicitações de Táxi</h2>
  <p>Olá!</p>
  <p>Segue em anexo o relatório com as solicitações de táxi conforme solicitado.</p>
  <div style="background-color: #f8f9fa; padding: 15px; border-radius: 5px; margin: 20px 0;">
    <p><strong>Data de geração:</strong> {generated_at}</p>
    <p><strong>Formato:</strong> Excel (.xlsx) - Formatado por carro e passageiros</p>
  </div>
  <p>Cada carro aparece destacado, seguido dos passageiros com endereço, telefone e dados da viagem.</p>
  <hr style="margin: 30px 0; border: none; border-top: 1px solid #eee;">
  <p style="color: #666; font-size: 12px;">
    Este é um email automático do Sistema de Solicitação de Táxi.<br>
    Por favor, não responda a este email.
  </p>
</div>
"""

TEST_BODY = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #28a745;">Teste de Email Bem-sucedido!</h2>
  <p>Este é um email de teste do Sistema de Solicitação de Táxi.</p>
  <p>Se você recebeu este email, a configuração está funcionando corretamente.</p>
  <p><strong>Data do teste:</strong> {generated_at}</p>
</div>
"""


class EmailDispatcher:
    """Sends report emails. settings_loader is re-invoked whenever the transport is rebuilt."""

    def __init__(self, settings_loader=load_email_settings, smtp_factory=smtplib.SMTP):
        self.settings_loader = settings_loader
        self.smtp_factory = smtp_factory
        self.settings = {}
        self.configured = False
        self.initialize_transport()

    def initialize_transport(self):
        self.settings = self.settings_loader() or {}
        if not self.settings.get('user') or not self.settings.get('password'):
            logger.warning("Email not configured: EMAIL_USER/EMAIL_PASS missing. Reports cannot be emailed.")
            self.configured = False
        else:
            self.configured = True
            logger.info(f"SMTP transport set to {self.settings.get('host')}:{self.settings.get('port')}")
        return self.configured

    def close(self):
        self.configured = False

    # --- Delivery ---

    def _deliver(self, message):
        smtp = self.smtp_factory(self.settings['host'], self.settings['port'], timeout=self.settings.get('timeout', 30))
        with smtp:
            smtp.starttls(context=ssl.create_default_context())
            smtp.login(self.settings['user'], self.settings['password'])
            smtp.send_message(message)

    def send(self, message):
        """Delivers a message, reconnecting once if the server rejects the credentials"""
        if not self.configured:
            raise EmailNotConfiguredError(NOT_CONFIGURED_MESSAGE)

        try:
            self._deliver(message)
        except smtplib.SMTPAuthenticationError as e:
            logger.warning(f"SMTP authentication failed ({e}). Rebuilding transport and retrying once...")
            if not self.initialize_transport():
                raise EmailNotConfiguredError(NOT_CONFIGURED_MESSAGE) from e
            try:
                self._deliver(message)
            except (smtplib.SMTPException, OSError) as retry_error:
                logger.error(f"Second attempt failed: {retry_error}")
                raise EmailAuthenticationError(f"Erro de autenticação de email: {retry_error}. {APP_PASSWORD_HINT}") from retry_error
            logger.info("Email sent on second attempt.")

        logger.info(f"Email sent to {message['To']}: {message['Message-ID']}")
        return {"success": True, "messageId": message['Message-ID']}

    def _new_message(self, to_email, subject, html):
        message = EmailMessage()
        message['From'] = self.settings.get('sender') or self.settings.get('user')
        message['To'] = to_email
        message['Subject'] = subject
        message['Message-ID'] = make_msgid(domain='taxi.local')
        message.set_content("Este email requer um cliente com suporte a HTML.")
        message.add_alternative(html, subtype='html')
        return message

    def send_report(self, to_email, file_path, subject=REPORT_SUBJECT, attachment_name=None):
        """Emails the report file as an attachment and removes the file once the server accepted it"""
        if not self.configured:
            raise EmailNotConfiguredError(NOT_CONFIGURED_MESSAGE)

        message = self._new_message(to_email, subject, REPORT_BODY.format(generated_at=format_generated_at()))
        with open(file_path, 'rb') as f:
            maintype, subtype = XLSX_MIMETYPE.split('/')
            message.add_attachment(
                f.read(),
                maintype=maintype,
                subtype=subtype,
                filename=attachment_name or os.path.basename(file_path)
            )

        result = self.send(message)
        self.remove_attachment(file_path)
        return result

    @staticmethod
    def remove_attachment(file_path):
        try:
            os.remove(file_path)
            logger.info(f"Temporary file removed: {file_path}")
        except OSError as e:
            logger.warning(f"Could not remove temporary file {file_path}: {e}")

    def export_and_send(self, requests, to_email, report_builder):
        """Generates the report for the given requests and emails it"""
        if not self.configured:
            raise EmailNotConfiguredError(NOT_CONFIGURED_MESSAGE)

        filename = report_builder.report_filename()
        file_path = report_builder.generate_file(requests, filename)
        result = self.send_report(
            to_email,
            file_path,
            f"{REPORT_SUBJECT} - {local_now().strftime('%d/%m/%Y')}",
            attachment_name=filename
        )
        return {
            "success": True,
            "message": f"Relatório enviado com sucesso para {to_email}",
            "recordsCount": len(requests),
            "messageId": result['messageId']
        }

    def send_test_email(self, to_email):
        message = self._new_message(
            to_email,
            'Teste - Sistema de Solicitação de Táxi',
            TEST_BODY.format(generated_at=format_generated_at())
        )
        return self.send(message)

    # --- Diagnostics ---

    def verify_configuration(self):
        """Connects and authenticates without sending anything"""
        if not self.configured:
            return {
                "success": False,
                "message": "Email não configurado",
                "error": "Variáveis EMAIL_USER e EMAIL_PASS não encontradas no arquivo .env",
                "suggestion": "Configure as variáveis de ambiente EMAIL_USER e EMAIL_PASS"
            }

        try:
            smtp = self.smtp_factory(self.settings['host'], self.settings['port'], timeout=self.settings.get('timeout', 30))
            with smtp:
                smtp.starttls(context=ssl.create_default_context())
                smtp.login(self.settings['user'], self.settings['password'])
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"Email verification failed: {e}")
            return {
                "success": False,
                "message": "Erro na configuração de email",
                "error": str(e),
                "suggestion": APP_PASSWORD_HINT
            }
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email verification failed: {e}")
            return {
                "success": False,
                "message": "Erro na configuração de email",
                "error": str(e),
                "suggestion": "Verifique as configurações de SMTP"
            }

        return {
            "success": True,
            "message": "Configuração de email válida",
            "config": {
                "host": self.settings['host'],
                "port": self.settings['port'],
                "user": self.settings['user']
            }
        }
