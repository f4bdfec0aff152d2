"""
HTML bodies for outgoing mail

Every builder returns (subject, html). Interpolated values are escaped.
"""
from html import escape
from typing import Optional, Tuple

FOOTER = "<p>Authentication system powered by MSPK Apps.</p>"


def _link(url: str) -> str:
    url = escape(url, quote=True)
    return f'<a href="{url}">{url}</a>'


def _greeting(name: Optional[str]) -> str:
    return f"<p>Hi {escape(name or 'there')},</p>"


def welcome_verification(app_name: str, verification_url: str) -> Tuple[str, str]:
    html = f"""
  <h2>Welcome to {escape(app_name)}!</h2>
  <p>Please verify your email address by clicking the link below:</p>
  {_link(verification_url)}
  <p>This link will expire in 24 hours.</p>
"""
    return f"Verify your email for {app_name}", html


def password_reset(name: Optional[str], reset_url: str) -> Tuple[str, str]:
    html = f"""
  <h2>Password Reset Request</h2>
  {_greeting(name)}
  <p>Click the link below to reset your password:</p>
  {_link(reset_url)}
  <p>This link will expire in 1 hour.</p>
  <p>If you didn't request this, please ignore this email.</p>
"""
    return "Password reset request", html


def password_changed(app_name: str, changed_at: str) -> Tuple[str, str]:
    html = f"""
  <h2>Your account password was changed on {escape(app_name)} at {escape(changed_at)}!</h2>
  <p>If you did not initiate this change, please contact support immediately.</p>
  {FOOTER}
"""
    return "Your password was changed", html


def delete_account(app_name: str, verification_url: str) -> Tuple[str, str]:
    html = f"""
  <h2>Reconsider deleting your account on {escape(app_name)}!</h2>
  <p>If you still want to proceed, please confirm your email address by clicking the link below:</p>
  {_link(verification_url)}
  <p style="color:blue;">This link will expire in 24 hours.</p>
  <p style="color:red;">All data associated with your account will be permanently deleted upon confirmation.</p>
  <p style="color:red;">This action is irreversible.</p>
"""
    return f"Confirm account deletion on {app_name}", html


def account_deleted(app_name: str, deleted_at: str) -> Tuple[str, str]:
    html = f"""
  <h2>Your account was deleted on {escape(app_name)} at {escape(deleted_at)}!</h2>
  <p>All data associated with your account has been permanently deleted.</p>
  {FOOTER}
"""
    return "Your account was deleted", html


def set_password_google_user(app_name: str, name: Optional[str], verification_url: str) -> Tuple[str, str]:
    html = f"""
  <h2>Here is your link requested to set password for {escape(app_name)}</h2>
  {_greeting(name)}
  <p>Please set your password by clicking the link below:</p>
  {_link(verification_url)}
  <p>This link will expire in 24 hours.</p>
  {FOOTER}
"""
    return f"Set your password for {app_name}", html


def password_set_confirmation(changed_at: str) -> Tuple[str, str]:
    html = f"""
  <h2>Your password was set on {escape(changed_at)}!</h2>
  <p>You can now login with your email and password.</p>
  {FOOTER}
"""
    return "Your password was set", html


def profile_update(app_name: str, name: Optional[str], verification_url: str) -> Tuple[str, str]:
    html = f"""
  <h2>Confirm your new email address on {escape(app_name)}</h2>
  {_greeting(name)}
  <p>Click the link below to confirm this address for your account:</p>
  {_link(verification_url)}
  <p>This link will expire in 24 hours.</p>
  <p>If you didn't request this, you can ignore this email.</p>
"""
    return f"Confirm your new email for {app_name}", html


def developer_verification(name: Optional[str], verification_url: str) -> Tuple[str, str]:
    html = f"""
  <h2>Email Verification</h2>
  {_greeting(name)}
  <p>Please verify your email address by clicking the link below:</p>
  {_link(verification_url)}
  <p>This link will expire in 24 hours.</p>
"""
    return "Verify your MSPK Apps developer account", html
