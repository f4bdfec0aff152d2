"""
Minimal HTML pages served for links opened from email

Forms post JSON back to the same URL, so no form parsing is needed server side.
"""
from html import escape
from typing import Optional

_STYLE = """
  body { font-family: sans-serif; max-width: 420px; margin: 60px auto; color: #222; }
  input { width: 100%; padding: 8px; margin: 6px 0 12px; box-sizing: border-box; }
  button { padding: 8px 16px; }
  .error { color: #b00020; }
  .ok { color: #1b5e20; }
"""

_SUBMIT_SCRIPT = """
<script>
  document.getElementById("form").addEventListener("submit", async function (event) {
    event.preventDefault();
    const body = {};
    new FormData(event.target).forEach(function (value, key) { body[key] = value; });
    const response = await fetch(window.location.pathname + window.location.search, {
      method: "POST",
      headers: { "Content-Type": "application/json" },
      body: JSON.stringify(body)
    });
    const result = await response.json();
    const out = document.getElementById("result");
    out.className = result.success ? "ok" : "error";
    out.textContent = result.message;
    if (result.success) { event.target.remove(); }
  });
</script>
"""


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{escape(title)}</title>
  <style>{_STYLE}</style>
</head>
<body>
  <h2>{escape(title)}</h2>
  {body}
</body>
</html>
"""


def message_page(title: str, message: str, ok: bool = True) -> str:
    css = "ok" if ok else "error"
    return _page(title, f'<p class="{css}">{escape(message)}</p>')


def password_form_page(title: str, token: str, button: str = "Save password") -> str:
    body = f"""
  <form id="form">
    <input type="hidden" name="token" value="{escape(token, quote=True)}">
    <label>New password<input type="password" name="new_password" minlength="6" required></label>
    <button type="submit">{escape(button)}</button>
  </form>
  <p id="result"></p>
  {_SUBMIT_SCRIPT}
"""
    return _page(title, body)


def delete_confirm_page(token: str, app_name: Optional[str], password_required: bool) -> str:
    password_field = ""
    if password_required:
        password_field = '<label>Password<input type="password" name="password" required></label>'
    body = f"""
  <p class="error">Your {escape(app_name or '')} account and all its data will be permanently deleted.</p>
  <form id="form">
    <input type="hidden" name="token" value="{escape(token, quote=True)}">
    {password_field}
    <button type="submit">Delete my account</button>
  </form>
  <p id="result"></p>
  {_SUBMIT_SCRIPT}
"""
    return _page("Delete account", body)
