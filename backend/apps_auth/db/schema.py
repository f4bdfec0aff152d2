"""Database schema definitions"""

# Developers (portal account holders)
DEVELOPERS_TABLE = """
CREATE TABLE IF NOT EXISTS developers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT UNIQUE NOT NULL,
    username TEXT UNIQUE NOT NULL,
    name TEXT NOT NULL,
    password_hash TEXT NOT NULL,             -- bcrypt
    email_verified INTEGER DEFAULT 0,
    is_active INTEGER DEFAULT 0,
    is_blocked INTEGER DEFAULT 0,
    failed_login_attempts INTEGER DEFAULT 0,
    locked_until DATETIME,
    created_at DATETIME NOT NULL,
    updated_at DATETIME
)
"""

# Subscription registrations, only consulted for "is a plan active"
DEVELOPER_PLANS_TABLE = """
CREATE TABLE IF NOT EXISTS developer_plans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    developer_id INTEGER NOT NULL REFERENCES developers(id) ON DELETE CASCADE,
    plan_name TEXT NOT NULL,
    features TEXT,  -- JSON object
    is_active INTEGER DEFAULT 1,
    start_date DATETIME,
    end_date DATETIME
)
"""

APP_GROUPS_TABLE = """
CREATE TABLE IF NOT EXISTS app_groups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    developer_id INTEGER NOT NULL REFERENCES developers(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    use_common_google_oauth INTEGER DEFAULT 0,
    common_google_client_id TEXT,
    common_google_client_secret TEXT,
    use_common_extra_fields INTEGER DEFAULT 0,
    common_extra_fields TEXT,  -- JSON array of field names
    use_common_username INTEGER DEFAULT 0,
    use_common_name INTEGER DEFAULT 0,
    use_common_password INTEGER DEFAULT 0,
    use_common_extra_fields_data INTEGER DEFAULT 0,
    created_at DATETIME NOT NULL
)
"""

APPS_TABLE = """
CREATE TABLE IF NOT EXISTS apps (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    developer_id INTEGER NOT NULL REFERENCES developers(id) ON DELETE CASCADE,
    group_id INTEGER REFERENCES app_groups(id) ON DELETE SET NULL,
    app_name TEXT NOT NULL,
    support_email TEXT,
    support_email_verified INTEGER DEFAULT 0,
    api_key TEXT UNIQUE NOT NULL,
    api_secret_hash TEXT NOT NULL,           -- sha256 hex, never the plaintext
    allow_email_signin INTEGER DEFAULT 1,
    allow_google_signin INTEGER DEFAULT 0,
    google_client_id TEXT,
    google_client_secret TEXT,
    extra_fields TEXT,           -- JSON array of field names
    user_edit_permissions TEXT,  -- JSON object, field -> bool
    access_token_expires_seconds INTEGER,
    created_at DATETIME NOT NULL
)
"""

END_USERS_TABLE = """
CREATE TABLE IF NOT EXISTS end_users (
    id TEXT PRIMARY KEY,  -- uuid4
    app_id INTEGER NOT NULL REFERENCES apps(id) ON DELETE CASCADE,
    email TEXT NOT NULL,
    username TEXT,
    name TEXT,
    password_hash TEXT,   -- NULL for Google-only accounts
    google_id TEXT,
    google_linked INTEGER DEFAULT 0,
    email_verified INTEGER DEFAULT 0,
    is_blocked INTEGER DEFAULT 0,
    last_login DATETIME,
    extra TEXT,  -- JSON object
    created_at DATETIME NOT NULL,
    updated_at DATETIME,
    UNIQUE (app_id, email)
)
"""

# Single-use tokens for every confirm-by-link flow
VERIFICATION_TOKENS_TABLE = """
CREATE TABLE IF NOT EXISTS verification_tokens (
    token TEXT PRIMARY KEY,
    subject_type TEXT NOT NULL,  -- 'end_user' | 'developer'
    subject_id TEXT NOT NULL,
    app_id INTEGER,
    verify_type TEXT NOT NULL,
    payload TEXT,  -- JSON object
    expires_at DATETIME NOT NULL,
    used INTEGER DEFAULT 0,
    created_at DATETIME NOT NULL
)
"""

LOGIN_HISTORY_TABLE = """
CREATE TABLE IF NOT EXISTS login_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject_type TEXT NOT NULL,
    subject_id TEXT NOT NULL,
    app_id INTEGER,
    login_method TEXT NOT NULL,
    ip_address TEXT,
    user_agent TEXT,
    login_time DATETIME NOT NULL
)
"""

# Write-only audit log of replaced password hashes
PASSWORD_HISTORY_TABLE = """
CREATE TABLE IF NOT EXISTS password_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject_type TEXT NOT NULL,
    subject_id TEXT NOT NULL,
    old_hash TEXT NOT NULL,
    reason TEXT,
    changed_at DATETIME NOT NULL
)
"""

DELETION_HISTORY_TABLE = """
CREATE TABLE IF NOT EXISTS deletion_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    app_id INTEGER NOT NULL,
    user_id TEXT NOT NULL,
    name TEXT,
    username TEXT,
    email TEXT NOT NULL,
    created_at DATETIME,
    deleted_at DATETIME NOT NULL
)
"""

REFRESH_TOKENS_TABLE = """
CREATE TABLE IF NOT EXISTS refresh_tokens (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    developer_id INTEGER NOT NULL REFERENCES developers(id) ON DELETE CASCADE,
    token_hash TEXT UNIQUE NOT NULL,
    expires_at DATETIME NOT NULL,
    created_at DATETIME NOT NULL
)
"""

API_CALLS_TABLE = """
CREATE TABLE IF NOT EXISTS api_calls (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    app_id INTEGER NOT NULL,
    developer_id INTEGER NOT NULL,
    endpoint TEXT,
    method TEXT,
    ip_address TEXT,
    user_agent TEXT,
    created_at DATETIME NOT NULL
)
"""

ALL_TABLES = [
    DEVELOPERS_TABLE,
    DEVELOPER_PLANS_TABLE,
    APP_GROUPS_TABLE,
    APPS_TABLE,
    END_USERS_TABLE,
    VERIFICATION_TOKENS_TABLE,
    LOGIN_HISTORY_TABLE,
    PASSWORD_HISTORY_TABLE,
    DELETION_HISTORY_TABLE,
    REFRESH_TOKENS_TABLE,
    API_CALLS_TABLE,
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_apps_credentials ON apps(api_key, api_secret_hash)",
    "CREATE INDEX IF NOT EXISTS idx_apps_group ON apps(group_id)",
    "CREATE INDEX IF NOT EXISTS idx_end_users_google ON end_users(app_id, google_id)",
    "CREATE INDEX IF NOT EXISTS idx_end_users_email ON end_users(email)",
    "CREATE INDEX IF NOT EXISTS idx_tokens_subject ON verification_tokens(subject_type, subject_id, verify_type)",
    "CREATE INDEX IF NOT EXISTS idx_plans_developer ON developer_plans(developer_id, is_active)",
    "CREATE INDEX IF NOT EXISTS idx_refresh_developer ON refresh_tokens(developer_id)",
    "CREATE INDEX IF NOT EXISTS idx_login_history_subject ON login_history(subject_type, subject_id)",
    "CREATE INDEX IF NOT EXISTS idx_api_calls_app ON api_calls(app_id, created_at)",
]
