"""Email Formatting — HTML bodies for transactional mail.

Invariants:
    - Pure string building, no IO
    - Interpolated URLs and text are HTML-escaped
"""

from html import escape
from urllib.parse import urlencode


def make_a_nice_email(text: str) -> str:
    """Wrap an HTML fragment in the shop's mail layout."""
    return f"""
    <div class="email" style="
      border: 1px solid black;
      padding: 20px;
      font-family: sans-serif;
      line-height: 2;
      font-size: 20px;
    ">
      <h2>Hello There!</h2>
      <p>{text}</p>
      <p>The Storefront Team</p>
    </div>
    """


def reset_link(frontend_url: str, reset_token: str) -> str:
    return f"{frontend_url.rstrip('/')}/reset?{urlencode({'resetToken': reset_token})}"


def password_reset_email(frontend_url: str, reset_token: str) -> tuple[str, str]:
    """(subject, html_body) for the reset mail."""
    link = escape(reset_link(frontend_url, reset_token), quote=True)
    body = make_a_nice_email(
        "Your Password Reset Token is here!"
        "<br/><br/>"
        f'<a href="{link}">Click Here to Reset</a>',
    )
    return "Your Password Reset Token", body
