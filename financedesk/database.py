from supabase import create_client
import logging
import os
from dotenv import load_dotenv
load_dotenv()


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_supabase = None
#single service-role client shared by the handlers
def get_db():
    global _supabase
    if _supabase is None:
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_KEY")
        if not url or not key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _supabase = create_client(url, key)
    return _supabase

def mark_reminders_sent(supabase, reminder_ids):
    if not reminder_ids:
        return []
    resp = supabase.table('reminders').update({'status': 'sent'}).in_('id', list(reminder_ids)).execute()
    return resp.data or []

# ----- EMAIL & WHATSAPP UTILITIES -----

def send_email(to_email: str, subject: str, html_body: str) -> bool:
    """
    Send email via SendGrid or SMTP (if configured).
    Returns True if sent, False otherwise.
    """
    sendgrid_key = os.getenv("SENDGRID_API_KEY", "")
    smtp_server = os.getenv("SMTP_SERVER", "")
    mail_from = os.getenv("MAIL_FROM", "noreply@example.com")

    if sendgrid_key:
        try:
            from sendgrid import SendGridAPIClient
            from sendgrid.helpers.mail import Mail

            message = Mail(
                from_email=mail_from,
                to_emails=to_email,
                subject=subject,
                html_content=html_body
            )
            sg = SendGridAPIClient(sendgrid_key)
            response = sg.send(message)
            logger.info(f"Email sent to {to_email}: {response.status_code}")
            return response.status_code in [200, 202]
        except Exception as e:
            logger.error(f"Error sending email via SendGrid: {e}")
            return False

    elif smtp_server:
        try:
            import smtplib
            from email.mime.text import MIMEText
            from email.mime.multipart import MIMEMultipart

            smtp_port = int(os.getenv("SMTP_PORT", "587"))
            smtp_user = os.getenv("SMTP_USER", "")
            smtp_password = os.getenv("SMTP_PASSWORD", "")
            sender = smtp_user or mail_from

            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = sender
            msg['To'] = to_email
            msg.attach(MIMEText(html_body, 'html'))

            with smtplib.SMTP(smtp_server, smtp_port) as server:
                server.starttls()
                if smtp_user:
                    server.login(smtp_user, smtp_password)
                server.sendmail(sender, to_email, msg.as_string())

            logger.info(f"Email sent to {to_email} via SMTP")
            return True
        except Exception as e:
            logger.error(f"Error sending email via SMTP: {e}")
            return False
    else:
        logger.warning("No email service configured")
        return False

def send_whatsapp(to_number: str, message: str) -> bool:
    """
    Send WhatsApp message via Twilio.
    to_number: '+919876543210' or 'whatsapp:+919876543210'
    Returns True if sent, False otherwise.
    """
    account_sid = os.getenv("TWILIO_ACCOUNT_SID", "")
    auth_token = os.getenv("TWILIO_AUTH_TOKEN", "")
    from_num = os.getenv("TWILIO_WHATSAPP_FROM", "whatsapp:+14155238886")

    if not account_sid or not auth_token:
        logger.warning("Twilio credentials not configured")
        return False

    if not to_number.startswith("whatsapp:"):
        to_number = f"whatsapp:{to_number}"

    try:
        from twilio.rest import Client

        client = Client(account_sid, auth_token)
        msg = client.messages.create(
            from_=from_num,
            body=message,
            to=to_number
        )
        logger.info(f"WhatsApp sent to {to_number}: {msg.sid}")
        return True
    except Exception as e:
        logger.error(f"Error sending WhatsApp: {e}")
        return False
