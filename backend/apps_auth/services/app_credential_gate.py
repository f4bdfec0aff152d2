import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from apps_auth.db.repositories import AppRepository, AppGroupRepository, PlanRepository, HistoryRepository
from apps_auth.models.app import App, AppGroup
from apps_auth.models.developer import DeveloperPlan
from .background_tasks import background_manager
from .credential_store import CredentialStore, get_credential_store
from .exceptions import MissingCredentialsError, InvalidCredentialsError, PlanInactiveError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Resolved caller of the public API"""
    app: App
    plan: DeveloperPlan
    group: Optional[AppGroup] = None
    # Apps sharing identity with this one (just this app when ungrouped)
    group_app_ids: List[int] = field(default_factory=list)

    @property
    def app_id(self) -> int:
        return self.app.id

    @property
    def extra_fields(self) -> List[str]:
        """Extra profile fields users of this app may carry"""
        if self.group and self.group.use_common_extra_fields:
            return list(self.group.common_extra_fields or [])
        return list(self.app.extra_fields or [])

    @property
    def google_client_id(self) -> Optional[str]:
        if self.group and self.group.use_common_google_oauth:
            return self.group.common_google_client_id
        return self.app.google_client_id


class AppCredentialGate:
    """Resolves (api_key, api_secret) to an AppContext or rejects the call"""

    def __init__(self, credential_store: Optional[CredentialStore] = None):
        self.credential_store = credential_store or get_credential_store()

    async def verify(
        self,
        api_key: Optional[str],
        api_secret: Optional[str],
        endpoint: Optional[str] = None,
        method: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AppContext:
        if not api_key or not api_secret:
            raise MissingCredentialsError()

        secret_hash = self.credential_store.hash_secret(api_secret)
        app = await AppRepository.get_by_credentials(api_key, secret_hash)
        if not app:
            # Same answer for a wrong key and a wrong secret
            raise InvalidCredentialsError("Invalid API key or secret")

        plan = await PlanRepository.get_active(app.developer_id)
        if not plan:
            raise PlanInactiveError()

        group = None
        group_app_ids = [app.id]
        if app.group_id:
            group = await AppGroupRepository.get_by_id(app.group_id)
            if group:
                group_app_ids = await AppRepository.list_ids_in_group(group.id)

        background_manager.spawn(
            HistoryRepository.record_api_call(app.id, app.developer_id, endpoint, method, ip_address, user_agent),
            name=f"usage:{app.id}",
        )
        return AppContext(app=app, plan=plan, group=group, group_app_ids=group_app_ids)


class AppRegistry:
    """Issues and rotates app credentials; the plaintext secret is only ever returned here"""

    def __init__(self, credential_store: Optional[CredentialStore] = None):
        self.credential_store = credential_store or get_credential_store()

    async def create_app(self, developer_id: int, app_name: str, **options) -> Tuple[App, str]:
        group_id = options.get("group_id")
        if group_id is not None:
            group = await AppGroupRepository.get_by_id(group_id)
            if not group or group.developer_id != developer_id:
                raise NotFoundError("Group not found")

        api_key = self.credential_store.generate_api_key()
        api_secret = self.credential_store.generate_api_secret()
        app = await AppRepository.create(
            developer_id=developer_id,
            app_name=app_name,
            api_key=api_key,
            api_secret_hash=self.credential_store.hash_secret(api_secret),
            **options
        )
        logger.info(f"Created app {app.id} for developer {developer_id}")
        return app, api_secret

    async def regenerate_secret(self, developer_id: int, app_id: int) -> Tuple[App, str]:
        """Replace the secret; the old one stops working immediately"""
        api_secret = self.credential_store.generate_api_secret()
        updated = await AppRepository.update_secret_hash(
            app_id, developer_id, self.credential_store.hash_secret(api_secret)
        )
        if not updated:
            raise NotFoundError("App not found")
        logger.info(f"Regenerated secret for app {app_id}")
        return await AppRepository.get_by_id(app_id), api_secret


# Global instances
_gate = None
_registry = None


def get_app_credential_gate() -> AppCredentialGate:
    """Get global credential gate instance"""
    global _gate
    if _gate is None:
        _gate = AppCredentialGate()
    return _gate


def get_app_registry() -> AppRegistry:
    global _registry
    if _registry is None:
        _registry = AppRegistry()
    return _registry
