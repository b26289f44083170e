from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from html import escape

SUPPORTED_LANGUAGES = ("en", "nl")
BRAND_COLOR = "#2563eb"
STRAVA_COLOR = "#fc5200"


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


def normalize_language(language: str | None, default: str = "en") -> str:
    value = (language or "").strip().lower()
    if value in SUPPORTED_LANGUAGES:
        return value
    return default if default in SUPPORTED_LANGUAGES else "en"


def _format_amount(value: float) -> str:
    return f"{value:g}"


def _layout(*, lang: str, title: str, header_text: str, body: str, header_color: str = BRAND_COLOR) -> str:
    return f"""\
<!DOCTYPE html>
<html lang="{lang}">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="margin:0;padding:0;background-color:#f3f4f6;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;">
  <div style="max-width:600px;margin:0 auto;background-color:#ffffff;">
    <div style="background-color:{header_color};color:#ffffff;padding:24px;text-align:center;">
      <h1 style="margin:0;">Runnmate</h1>
      <p style="margin:8px 0 0 0;">{header_text}</p>
    </div>
    <div style="padding:24px;">
{body}
    </div>
    <div style="background-color:#f9fafb;padding:16px;text-align:center;color:#6b7280;font-size:14px;">
      <p>Runnmate - Connecting runners across Europe</p>
      <p>Questions? Contact us at admin@runnmate.com</p>
    </div>
  </div>
</body>
</html>"""


_MAGIC_LINK_COPY = {
    "en": {
        "subject": "Your Runnmate Login Link",
        "header": "Your Secure Login Link",
        "heading": "Welcome to Runnmate!",
        "intro": "Click the button below to securely sign in to your account. This link will expire in {hours} hours.",
        "button": "Sign In to Runnmate",
        "fallback": "If the button doesn't work, copy and paste this link into your browser:",
        "security": "This link was requested for {email}. If you didn't request this link, you can safely ignore this email.",
    },
    "nl": {
        "subject": "Je Runnmate inloglink",
        "header": "Je beveiligde inloglink",
        "heading": "Welkom bij Runnmate!",
        "intro": "Klik op de knop hieronder om veilig in te loggen. Deze link verloopt over {hours} uur.",
        "button": "Inloggen bij Runnmate",
        "fallback": "Werkt de knop niet? Kopieer deze link en plak hem in je browser:",
        "security": "Deze link is aangevraagd voor {email}. Heb je dit niet aangevraagd, dan kun je deze e-mail negeren.",
    },
}


def magic_link_email(link: str, email: str, language: str, *, expiry_hours: int) -> RenderedEmail:
    lang = normalize_language(language)
    copy = _MAGIC_LINK_COPY[lang]
    safe_link = escape(link, quote=True)
    intro = copy["intro"].format(hours=expiry_hours)
    security = copy["security"].format(email=escape(email))
    body = f"""\
      <h2>{copy["heading"]}</h2>
      <p>{intro}</p>
      <div style="margin:32px 0;text-align:center;">
        <a href="{safe_link}" style="display:inline-block;background-color:{BRAND_COLOR};color:#ffffff;padding:12px 24px;border-radius:6px;text-decoration:none;font-weight:500;">{copy["button"]}</a>
      </div>
      <p style="color:#6b7280;font-size:14px;">{copy["fallback"]}<br>
        <a href="{safe_link}" style="color:{BRAND_COLOR};word-break:break-all;">{safe_link}</a>
      </p>
      <p style="color:#6b7280;font-size:14px;border-top:1px solid #e2e8f0;padding-top:16px;">{security}</p>"""
    html = _layout(lang=lang, title=copy["subject"], header_text=copy["header"], body=body)
    text = f"{copy['subject']}\n\n{intro}\n{link}\n\n{copy['security'].format(email=email)}"
    return RenderedEmail(subject=copy["subject"], html=html, text=text)


def discount_percentage(listing_price: float, offer_price: float) -> int:
    if listing_price <= 0:
        return 0
    return round((listing_price - offer_price) / listing_price * 100)


def offer_notification_email(
    *,
    listing_title: str,
    listing_price: float,
    listing_size: float,
    offer_price: float,
    buyer_name: str,
    buyer_email: str,
    message: str = "",
) -> RenderedEmail:
    discount = discount_percentage(listing_price, offer_price)
    direction = "below" if discount > 0 else "above"
    subject = f"New €{_format_amount(offer_price)} offer on your {listing_title}"
    title = escape(listing_title)
    name = escape(buyer_name)
    buyer = escape(buyer_email)
    quote_block = (
        f'<p style="background-color:#f8fafc;padding:12px;border-radius:6px;border-left:4px solid {BRAND_COLOR};">'
        f"&quot;{escape(message)}&quot;</p>"
        if message
        else ""
    )
    body = f"""\
      <h2>Great news! Someone wants to buy your shoes</h2>
      <div style="background-color:#f8fafc;border:1px solid #e2e8f0;border-radius:8px;padding:16px;margin:16px 0;">
        <h3 style="margin:0 0 8px 0;">{title}</h3>
        <p style="margin:0;color:#6b7280;">Size EU {_format_amount(listing_size)}</p>
        <p style="margin:16px 0 0 0;color:#6b7280;">Your asking price: €{_format_amount(listing_price)}</p>
        <p style="margin:4px 0 0 0;"><span style="font-size:24px;font-weight:bold;color:{BRAND_COLOR};">€{_format_amount(offer_price)}</span>
          <span style="background-color:#dcfce7;color:#166534;padding:4px 8px;border-radius:4px;font-size:12px;">{abs(discount)}% {direction} asking price</span></p>
      </div>
      <h3>From: {name}</h3>
      <p style="color:#6b7280;">Email: {buyer}</p>
      {quote_block}
      <p style="color:#6b7280;font-size:14px;border-top:1px solid #e2e8f0;padding-top:16px;">
        <strong>Tip:</strong> Respond quickly! Buyers are more likely to complete the purchase when sellers are responsive.
      </p>"""
    html = _layout(lang="en", title="New Offer on Your Running Shoes", header_text="New Offer on Your Running Shoes!", body=body)
    text_lines = [
        subject,
        "",
        f"{listing_title} (size EU {_format_amount(listing_size)})",
        f"Asking price: €{_format_amount(listing_price)}",
        f"Offer: €{_format_amount(offer_price)} ({abs(discount)}% {direction} asking price)",
        f"From: {buyer_name} <{buyer_email}>",
    ]
    if message:
        text_lines += ["", message]
    return RenderedEmail(subject=subject, html=html, text="\n".join(text_lines))


def contact_relay_email(*, name: str, email: str, subject: str, message: str, sent_at: datetime) -> RenderedEmail:
    message_html = escape(message).replace("\n", "<br>")
    body = f"""\
      <h2>New Contact Form Submission</h2>
      <p><strong>From:</strong> {escape(name)} ({escape(email)})</p>
      <p><strong>Subject:</strong> {escape(subject)}</p>
      <p><strong>Message:</strong></p>
      <div style="background-color:#f9f9f9;padding:15px;border-left:4px solid {BRAND_COLOR};margin:15px 0;">{message_html}</div>
      <p style="color:#6b7280;font-size:14px;">
        <strong>Reply to:</strong> {escape(email)}<br>
        <strong>Sent from:</strong> Runnmate Contact Form<br>
        <strong>Time:</strong> {sent_at.isoformat(timespec="seconds")}
      </p>"""
    full_subject = f"Contact Form: {subject}"
    html = _layout(lang="en", title=escape(full_subject), header_text="Contact Form", body=body)
    text = f"From: {name} ({email})\nSubject: {subject}\n\n{message}\n\nSent at {sent_at.isoformat(timespec='seconds')}"
    return RenderedEmail(subject=full_subject, html=html, text=text)


def strava_verified_email(*, name: str, total_distance_km: int) -> RenderedEmail:
    subject = "Your Strava Account is Now Verified!"
    body = f"""\
      <h2>Congratulations, {escape(name)}!</h2>
      <p>Your Strava account has been successfully verified with Runnmate. Your running achievements are now visible to other users!</p>
      <div style="background-color:#f9fafb;padding:16px;margin:16px 0;border-radius:8px;">
        <h3 style="margin-top:0;">Your Running Stats</h3>
        <p style="font-size:24px;font-weight:bold;color:{STRAVA_COLOR};">{total_distance_km} km</p>
        <p style="color:#6b7280;">Total Distance Logged</p>
      </div>
      <ul>
        <li>Your running distance is now verified</li>
        <li>Other users can see your verified runner status</li>
        <li>Build trust in the Runnmate community</li>
      </ul>"""
    html = _layout(
        lang="en",
        title="Strava Verification Complete",
        header_text="Strava Verification Complete",
        body=body,
        header_color=STRAVA_COLOR,
    )
    text = f"Congratulations, {name}!\n\nYour Strava account is verified with Runnmate: {total_distance_km} km logged."
    return RenderedEmail(subject=subject, html=html, text=text)
