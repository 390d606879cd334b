"""
Email Renderer Service - newsletter digest and verification messages.

Builds the subject, HTML body and plain-text body for outbound mail.

Key behaviors:
- All interpolated text is HTML-escaped
- Links are built from the configured public base URL
- Unsubscribe links embed the owner's username and the subscriber's email
- Plain-text alternative rendered alongside HTML
"""

from __future__ import annotations

import html
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from urllib.parse import quote

from src.core.entities import ContentItem, ContentOwner
from src.core.ports.email import EmailAddress

# --- Styles ---

_BODY_STYLE = (
    "background-color:#f6f9fc;"
    'font-family:-apple-system,BlinkMacSystemFont,"Segoe UI",Roboto,"Helvetica Neue",sans-serif;'
)
_CONTAINER_STYLE = (
    "background-color:#ffffff;margin:0 auto;padding:20px 0 48px;max-width:600px;"
)
_H1_STYLE = "color:#333;font-size:28px;font-weight:bold;margin:40px 0 20px;text-align:center;"
_MUTED_STYLE = "color:#666;font-size:16px;text-align:center;margin:0 0 10px;"
_DATE_STYLE = "color:#999;font-size:14px;text-align:center;margin:0 0 30px;"
_POST_STYLE = "padding:0 40px 20px;"
_IMG_STYLE = "width:100%;height:auto;border-radius:8px;margin-bottom:16px;"
_GENRE_STYLE = "color:#5469d4;font-size:12px;font-weight:bold;text-transform:uppercase;"
_POST_TITLE_STYLE = "color:#333;font-size:20px;font-weight:bold;margin:0 0 16px;"
_BUTTON_STYLE = (
    "background-color:#5469d4;border-radius:4px;color:#fff;font-size:14px;"
    "text-decoration:none;display:inline-block;padding:10px 20px;"
)
_FOOTER_STYLE = "color:#999;font-size:12px;text-align:center;padding:0 40px;"
_HR = '<hr style="border:none;border-top:1px solid #e6ebf1;margin:20px 0;" />'


@dataclass(frozen=True)
class RenderedEmail:
    """Rendered message content, ready to wrap in an EmailMessage."""

    subject: str
    body_html: str
    body_text: str


def _escape(text: str) -> str:
    return html.escape(text, quote=True)


def _base(base_url: str) -> str:
    return base_url.rstrip("/")


# --- URLs ---


def build_post_url(base_url: str, username: str, slug: str) -> str:
    return f"{_base(base_url)}/{quote(username)}/posts/{quote(slug)}"


def build_unsubscribe_url(base_url: str, username: str, email: str) -> str:
    """Per-subscriber unsubscribe link (owner + email pair)."""
    return f"{_base(base_url)}/{quote(username)}/newsletter/unsubscribe?email={quote(email, safe='')}"


def build_confirm_url(base_url: str, username: str, token: str) -> str:
    return f"{_base(base_url)}/{quote(username)}/newsletter/confirm?token={quote(token, safe='')}"


# --- Headers ---


def digest_subject(owner: ContentOwner) -> str:
    """Owner's newsletter title, else a generic 'Latest posts from' line."""
    if owner.newsletter_title and owner.newsletter_title.strip():
        return owner.newsletter_title.strip()
    return f"Latest posts from {owner.name}"


def digest_sender(owner: ContentOwner, default_email: str) -> EmailAddress:
    """From header: owner's custom name/address, falling back to the platform address."""
    return EmailAddress(email=owner.from_email or default_email, name=owner.from_name or owner.name)


# --- Digest ---


def _render_item_html(item: ContentItem, base_url: str, username: str) -> str:
    parts = [f'<div style="{_POST_STYLE}">']
    if item.thumbnail_url:
        parts.append(
            f'<img src="{_escape(item.thumbnail_url)}" alt="{_escape(item.title)}" '
            f'style="{_IMG_STYLE}" />'
        )
    if item.genre:
        parts.append(f'<p style="{_GENRE_STYLE}">{_escape(item.genre)}</p>')
    parts.append(f'<h2 style="{_POST_TITLE_STYLE}">{_escape(item.title)}</h2>')
    url = build_post_url(base_url, username, item.slug)
    parts.append(f'<a href="{_escape(url)}" style="{_BUTTON_STYLE}">Read more</a>')
    parts.append(_HR)
    parts.append("</div>")
    return "\n".join(parts)


def render_digest(
    owner: ContentOwner,
    items: Sequence[ContentItem],
    *,
    unsubscribe_url: str,
    base_url: str,
    site_name: str,
    sent_on: date,
) -> RenderedEmail:
    """
    Render one subscriber's digest.

    Args:
        owner: Newsletter owner (branding, title)
        items: Items to list, in display order
        unsubscribe_url: This subscriber's unsubscribe link
        base_url: Public site base URL for post links
        site_name: Platform name for the footer
        sent_on: Date shown under the title

    Returns:
        RenderedEmail with subject, HTML and plain-text bodies
    """
    subject = digest_subject(owner)
    title = _escape(subject)
    author = _escape(owner.name)
    date_str = sent_on.strftime("%B %d, %Y")

    posts_html = "\n".join(_render_item_html(i, base_url, owner.username) for i in items)
    description = ""
    if owner.newsletter_description:
        description = f'<p style="{_MUTED_STYLE}">{_escape(owner.newsletter_description)}</p>'

    body_html = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8" /><title>{title}</title></head>
<body style="{_BODY_STYLE}">
<div style="{_CONTAINER_STYLE}">
<h1 style="{_H1_STYLE}">{title}</h1>
<p style="{_MUTED_STYLE}">by {author}</p>
{description}
<p style="{_DATE_STYLE}">{date_str}</p>
{_HR}
{posts_html}
<div style="{_FOOTER_STYLE}">
<p>You are receiving this email because you subscribed to {author}'s newsletter.</p>
<p><a href="{_escape(unsubscribe_url)}" style="color:#999;text-decoration:underline;">Unsubscribe</a></p>
<p>{_escape(site_name)}</p>
</div>
</div>
</body>
</html>"""

    lines = [subject, f"by {owner.name}", date_str, ""]
    for item in items:
        if item.genre:
            lines.append(f"[{item.genre}]")
        lines.append(item.title)
        lines.append(build_post_url(base_url, owner.username, item.slug))
        lines.append("")
    lines.append(f"You are receiving this email because you subscribed to {owner.name}'s newsletter.")
    lines.append(f"Unsubscribe: {unsubscribe_url}")
    lines.append(site_name)

    return RenderedEmail(subject=subject, body_html=body_html, body_text="\n".join(lines))


# --- Verification ---


def verification_subject(owner_name: str) -> str:
    return f"Confirm your subscription to {owner_name}'s newsletter"


def render_verification(
    owner_name: str,
    verification_url: str,
    site_name: str,
) -> RenderedEmail:
    """Double opt-in message with the confirmation link."""
    name = _escape(owner_name)
    url = _escape(verification_url)
    body_html = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8" /></head>
<body style="{_BODY_STYLE}">
<div style="{_CONTAINER_STYLE}">
<h1 style="{_H1_STYLE}">Confirm your subscription</h1>
<p style="padding:0 40px;">Thanks for subscribing to {name}'s newsletter.</p>
<p style="padding:0 40px;">Click the button below to confirm your email address.</p>
<p style="text-align:center;"><a href="{url}" style="{_BUTTON_STYLE}">Confirm email address</a></p>
<p style="{_FOOTER_STYLE}">If you did not request this, you can ignore this email.</p>
<p style="{_FOOTER_STYLE}">{_escape(site_name)}</p>
</div>
</body>
</html>"""
    body_text = "\n".join(
        [
            f"Thanks for subscribing to {owner_name}'s newsletter.",
            "Confirm your email address by opening this link:",
            verification_url,
            "",
            "If you did not request this, you can ignore this email.",
            site_name,
        ]
    )
    return RenderedEmail(
        subject=verification_subject(owner_name),
        body_html=body_html,
        body_text=body_text,
    )
