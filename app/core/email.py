import smtplib
import logging
from datetime import date
from decimal import Decimal
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import List

from app.core.config import settings

logger = logging.getLogger(__name__)


def smtp_configured() -> bool:
    return all([settings.SMTP_HOST, settings.SMTP_USER, settings.SMTP_PASSWORD, settings.FROM_EMAIL])


def _send_email(to_email: str, subject: str, plain_text: str, html_text: str) -> None:
    """Low-level helper to send one email via SMTP."""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = formataddr((settings.FROM_NAME, settings.FROM_EMAIL))
    msg["To"] = to_email
    if settings.REPLY_TO_EMAIL:
        msg["Reply-To"] = settings.REPLY_TO_EMAIL

    msg.attach(MIMEText(plain_text, "plain"))
    msg.attach(MIMEText(html_text, "html"))

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT or 587) as server:
        server.ehlo()
        server.starttls()
        server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.sendmail(settings.FROM_EMAIL, to_email, msg.as_string())


def _deliver(to_email: str, subject: str, plain_text: str, html_text: str) -> bool:
    """Send one message; False when SMTP is not configured or sending fails."""
    if not to_email:
        return False
    if not smtp_configured():
        logger.warning("SMTP not fully configured; skipping email '%s' to %s.", subject, to_email)
        return False
    try:
        _send_email(to_email, subject, plain_text, html_text)
        logger.info("Email '%s' sent to %s", subject, to_email)
        return True
    except Exception:
        logger.exception("Failed to send email '%s' to %s", subject, to_email)
        return False


def _money(value) -> str:
    return f"₹{Decimal(str(value or 0)):,.2f}"


def _html_page(title: str, colour: str, body: str) -> str:
    return f"""
    <html>
    <body style="font-family:Arial,sans-serif;color:#333;background:#f6f6f6;padding:24px;">
      <div style="max-width:560px;margin:0 auto;background:#ffffff;border-radius:12px;
                  border:2px solid {colour};padding:32px;">
        <h2 style="color:{colour};margin-bottom:8px;">{title}</h2>
        {body}
        <p style="font-size:12px;color:#94a3b8;margin-top:24px;">
          This is an automated notification from {settings.FROM_NAME}.
        </p>
      </div>
    </body>
    </html>
    """


def _rows(pairs) -> str:
    cells = "".join(
        f'<tr><td style="padding:8px 0;font-weight:bold;">{label}</td>'
        f'<td style="padding:8px 0;">{value}</td></tr>'
        for label, value in pairs
    )
    return f'<table style="width:100%;border-collapse:collapse;font-size:14px;">{cells}</table>'


def send_welcome_email(to_email: str, user_name: str) -> bool:
    subject = f"Welcome to {settings.FROM_NAME}!"
    plain_text = (
        f"Hello {user_name},\n\n"
        f"Your membership account with {settings.FROM_NAME} has been created.\n"
        f"You can now sign in to see meetings, payments and loans.\n\n"
        f"{settings.FROM_NAME}"
    )
    html_text = _html_page(
        "Welcome!",
        "#2563eb",
        f"<p>Hello {user_name},</p>"
        f"<p>Your membership account with <strong>{settings.FROM_NAME}</strong> has been created.</p>"
        f"<p>You can now sign in to see meetings, payments and loans.</p>",
    )
    return _deliver(to_email, subject, plain_text, html_text)


def send_loan_created_email(
    to_email: str,
    user_name: str,
    amount,
    loan_type: str,
    due_date: date,
    interest_rate,
    expected_interest,
) -> bool:
    subject = "Loan Created Successfully"
    details = [
        ("Amount", _money(amount)),
        ("Loan type", loan_type),
        ("Due date", due_date.strftime("%d %b %Y")),
        ("Interest rate", f"{interest_rate}% per month"),
        ("Expected interest", _money(expected_interest)),
    ]
    plain_text = (
        f"Hello {user_name},\n\nA loan has been created for you.\n\n"
        + "\n".join(f"{label}: {value}" for label, value in details)
        + f"\n\n{settings.FROM_NAME}"
    )
    html_text = _html_page(
        "Loan Created",
        "#2563eb",
        f"<p>Hello {user_name},</p><p>A loan has been created for you.</p>{_rows(details)}",
    )
    return _deliver(to_email, subject, plain_text, html_text)


def send_loan_request_approved_email(
    to_email: str,
    user_name: str,
    amount,
    loan_type: str,
    due_date: date,
    interest_rate,
    expected_interest,
) -> bool:
    """Approval notice; expected_interest is computed to the due date by the caller."""
    subject = "Loan Request Approved"
    details = [
        ("Amount", _money(amount)),
        ("Loan type", loan_type),
        ("Due date", due_date.strftime("%d %b %Y")),
        ("Interest rate", f"{interest_rate}% per month"),
        ("Expected interest", _money(expected_interest)),
    ]
    plain_text = (
        f"Hello {user_name},\n\nYour loan request has been approved.\n\n"
        + "\n".join(f"{label}: {value}" for label, value in details)
        + f"\n\n{settings.FROM_NAME}"
    )
    html_text = _html_page(
        "Loan Request Approved",
        "#15803d",
        f"<p>Hello {user_name},</p><p>Your loan request has been <strong>approved</strong>.</p>{_rows(details)}",
    )
    return _deliver(to_email, subject, plain_text, html_text)


def send_loan_request_rejected_email(
    to_email: str,
    user_name: str,
    amount,
    loan_type: str,
    reason: str = "",
) -> bool:
    subject = "Loan Request Status Update"
    details = [("Amount", _money(amount)), ("Loan type", loan_type)]
    if reason:
        details.append(("Reason", reason))
    plain_text = (
        f"Hello {user_name},\n\nYour loan request could not be approved.\n\n"
        + "\n".join(f"{label}: {value}" for label, value in details)
        + f"\n\n{settings.FROM_NAME}"
    )
    html_text = _html_page(
        "Loan Request Not Approved",
        "#b91c1c",
        f"<p>Hello {user_name},</p><p>Your loan request could not be approved.</p>{_rows(details)}",
    )
    return _deliver(to_email, subject, plain_text, html_text)


def send_loan_due_reminder_email(
    to_email: str,
    user_name: str,
    amount,
    due_date: date,
    days_until_due: int,
) -> bool:
    plural = "" if days_until_due == 1 else "s"
    subject = f"Loan Payment Reminder - Due in {days_until_due} day{plural}"
    details = [
        ("Amount", _money(amount)),
        ("Due date", due_date.strftime("%d %b %Y")),
        ("Days remaining", str(days_until_due)),
    ]
    plain_text = (
        f"Hello {user_name},\n\nThis is a reminder that your loan is due soon.\n\n"
        + "\n".join(f"{label}: {value}" for label, value in details)
        + f"\n\n{settings.FROM_NAME}"
    )
    html_text = _html_page(
        "Loan Payment Reminder",
        "#a16207",
        f"<p>Hello {user_name},</p><p>This is a reminder that your loan is due soon.</p>{_rows(details)}",
    )
    return _deliver(to_email, subject, plain_text, html_text)


def send_weekly_report(to_emails: List[str], overdue_loans: List[dict]) -> int:
    """Send the overdue-loans report to committee members.

    Each overdue_loans dict: {"user_name", "amount", "due_date", "days_overdue", "interest"}.
    Returns the number of messages sent.
    """
    if not to_emails:
        return 0

    subject = f"{settings.FROM_NAME} - Weekly Overdue Loans Report"
    total_amount = sum(Decimal(str(item["amount"])) for item in overdue_loans)
    total_interest = sum(Decimal(str(item["interest"])) for item in overdue_loans)

    # ---- plain text --------------------------------------------------------
    lines = [f"{settings.FROM_NAME} - Weekly Overdue Loans Report", ""]
    if overdue_loans:
        lines.append(f"OVERDUE LOANS ({len(overdue_loans)}):")
        for item in overdue_loans:
            lines.append(
                f"  - {item['user_name']}: {_money(item['amount'])} due {item['due_date']}, "
                f"{item['days_overdue']} days overdue, interest {_money(item['interest'])}"
            )
        lines.append("")
        lines.append(f"Total outstanding: {_money(total_amount)}; accrued interest: {_money(total_interest)}")
    else:
        lines.append("No loans are overdue this week.")
    plain_text = "\n".join(lines)

    # ---- HTML --------------------------------------------------------------
    if overdue_loans:
        rows = "".join(
            f'<tr><td style="padding:6px 12px;border-bottom:1px solid #e2e8f0;">{item["user_name"]}</td>'
            f'<td style="padding:6px 12px;border-bottom:1px solid #e2e8f0;text-align:right;">{_money(item["amount"])}</td>'
            f'<td style="padding:6px 12px;border-bottom:1px solid #e2e8f0;">{item["due_date"]}</td>'
            f'<td style="padding:6px 12px;border-bottom:1px solid #e2e8f0;text-align:right;">{item["days_overdue"]}</td>'
            f'<td style="padding:6px 12px;border-bottom:1px solid #e2e8f0;text-align:right;">{_money(item["interest"])}</td></tr>'
            for item in overdue_loans
        )
        body = f"""
        <table style="width:100%;border-collapse:collapse;font-size:14px;">
          <tr style="background:#fef2f2;">
            <th style="padding:8px 12px;text-align:left;">Member</th>
            <th style="padding:8px 12px;text-align:right;">Amount</th>
            <th style="padding:8px 12px;text-align:left;">Due</th>
            <th style="padding:8px 12px;text-align:right;">Days overdue</th>
            <th style="padding:8px 12px;text-align:right;">Interest</th>
          </tr>
          {rows}
        </table>
        <p>Total outstanding: <strong>{_money(total_amount)}</strong>;
           accrued interest: <strong>{_money(total_interest)}</strong></p>"""
    else:
        body = "<p>No loans are overdue this week.</p>"
    html_text = _html_page("Weekly Overdue Loans Report", "#b91c1c", body)

    sent = 0
    for email_addr in to_emails:
        if _deliver(email_addr, subject, plain_text, html_text):
            sent += 1
    return sent
