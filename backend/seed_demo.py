#!/usr/bin/env python3
"""
Demo data seeder

Creates a verified developer with an active plan and one app, then prints the
app's API key and secret. The secret is only shown here.
"""

import asyncio
import sys
from pathlib import Path

# Add the backend directory to Python path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

from apps_auth.db.database import init_db
from apps_auth.db.repositories import DeveloperRepository, PlanRepository
from apps_auth.services.app_credential_gate import get_app_registry
from apps_auth.services.credential_store import get_credential_store


async def seed(email: str, password: str):
    await init_db()

    developer = await DeveloperRepository.get_by_email(email)
    if not developer:
        developer = await DeveloperRepository.create(
            email=email,
            username=email.split("@")[0],
            name="Demo Developer",
            password_hash=get_credential_store().hash_password(password),
        )
        await DeveloperRepository.mark_verified(developer.id)

    if not await PlanRepository.get_active(developer.id):
        await PlanRepository.create(developer.id, "demo")

    app, api_secret = await get_app_registry().create_app(
        developer.id, "Demo App", allow_email_signin=True, allow_google_signin=False
    )
    return developer, app, api_secret


if __name__ == "__main__":
    email = sys.argv[1] if len(sys.argv) > 1 else "demo@example.com"
    password = sys.argv[2] if len(sys.argv) > 2 else "demo-password"

    print("=== Apps Auth demo seed ===")
    developer, app, api_secret = asyncio.run(seed(email, password))
    print(f"Developer: {developer.email} (id {developer.id})")
    print(f"App:       {app.app_name} (id {app.id})")
    print(f"API key:    {app.api_key}")
    print(f"API secret: {api_secret}")
    print()
    print("Store the secret now, it cannot be recovered.")
