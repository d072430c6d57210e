# fulfillment/services/identity_service.py
from typing import Any, Dict, Iterable, Optional

import requests
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fulfillment.data.database import reading, transaction
from fulfillment.data.models.customer import CustomerModel
from fulfillment.domain.caller import CallerContext, ExternalIdentity
from fulfillment.domain.enums import Role
from fulfillment.domain.errors import IdentityUnavailable, StorageFailure, Unauthenticated
from fulfillment.repos.customer_repo import CustomerRepo
from fulfillment.utils.retry import http_retry
from fulfillment.utils.settings import ADMIN_EXTERNAL_IDS, IDENTITY_SERVICE_URL, IDENTITY_TIMEOUT_SECONDS
from fulfillment.utils.logging import get_logger

logger = get_logger(__name__)


class TokenVerifier:
    """Verifies bearer tokens against the identity provider over HTTP."""

    def __init__(self, base_url: str | None = None, timeout: int = IDENTITY_TIMEOUT_SECONDS):
        self.base_url = (base_url or IDENTITY_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _fetch(self, token: str) -> requests.Response:
        url = f"{self.base_url}/tokens/verify"
        logger.info(f"TokenVerifier GET {url}")

        resp = requests.get(url, headers={"Authorization": f"Bearer {token}"}, timeout=self.timeout)
        if resp.status_code >= 500:
            resp.raise_for_status()
        return resp

    def verify(self, token: str) -> ExternalIdentity:
        try:
            resp = self._fetch(token)
        except requests.RequestException as e:
            logger.error(f"Identity provider unreachable: {e}")
            raise IdentityUnavailable("Identity provider unavailable") from e

        if resp.status_code in (401, 403):
            raise Unauthenticated("Token rejected by identity provider")
        if not resp.ok:
            raise IdentityUnavailable(
                "Unexpected identity provider response", status_code=resp.status_code
            )

        data = resp.json()
        uid = data.get("uid")
        if not uid:
            raise Unauthenticated("Token carries no subject")
        return ExternalIdentity(
            external_id=str(uid),
            email=data.get("email"),
            display_name=data.get("name"),
        )


def _display_name(hints: Dict[str, Any]) -> str:
    name = hints.get("name")
    if name:
        return name
    email = hints.get("email")
    if email:
        return email.split("@")[0]
    return "New customer"


class IdentityResolver:
    """
    Maps a caller token to a local customer and role.

    Built once at startup and shared by every request. Verification and
    local provisioning are separate steps; caller_context runs both.
    """

    def __init__(self, verifier: TokenVerifier, admin_external_ids: Iterable[str] = ADMIN_EXTERNAL_IDS):
        self.verifier = verifier
        self.admin_external_ids = frozenset(admin_external_ids)

    def resolve_external_identity(self, token: Optional[str]) -> ExternalIdentity:
        if not token:
            raise Unauthenticated("No token provided")
        return self.verifier.verify(token)

    def ensure_local_customer(self, db: Session, external_id: str, profile_hints: Dict[str, Any] | None = None) -> int:
        customer = self._ensure_customer(db, external_id, profile_hints or {})
        with reading(db):
            return customer.id

    def caller_context(self, db: Session, token: Optional[str]) -> CallerContext:
        identity = self.resolve_external_identity(token)
        customer = self._ensure_customer(
            db,
            identity.external_id,
            {"email": identity.email, "name": identity.display_name},
        )
        with reading(db):
            return CallerContext(customer_id=customer.id, role=Role(customer.role))

    def _ensure_customer(self, db: Session, external_id: str, hints: Dict[str, Any]) -> CustomerModel:
        repo = CustomerRepo(db)
        with reading(db):
            existing = repo.get_by_external_id(external_id)
        if existing:
            return existing

        role = Role.ADMIN if external_id in self.admin_external_ids else Role.USER
        try:
            with transaction(db):
                customer = repo.create_customer(
                    CustomerModel(
                        external_id=external_id,
                        name=_display_name(hints),
                        email=hints.get("email"),
                        role=role.value,
                    )
                )
                customer_id = customer.id
        except StorageFailure as e:
            if not isinstance(e.__cause__, IntegrityError):
                raise
            with reading(db):
                existing = repo.get_by_external_id(external_id)
            if existing is None:
                raise
            return existing

        logger.info(f"Provisioned local customer {customer_id} for external id {external_id} as {role.value}")
        return customer
