"""
User Service
Business logic for administrative user management.
"""

from __future__ import annotations

from typing import Iterable, Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.config import settings
from rbac_admin.core.context import SessionContext
from rbac_admin.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from rbac_admin.core.permission_resolver import permission_resolver
from rbac_admin.core.rbac import normalize_keys
from rbac_admin.core.security import get_password_hash
from rbac_admin.models.audit_log import ActorType
from rbac_admin.models.role import Role
from rbac_admin.models.user import User, UserStatus
from rbac_admin.repositories.assignment import user_role_repository
from rbac_admin.repositories.role import role_repository
from rbac_admin.repositories.session import user_session_repository
from rbac_admin.repositories.user import user_repository
from rbac_admin.schemas.auth import RegisterRequest, UserProfile
from rbac_admin.schemas.user_management import (
    UserCreateRequest,
    UserDetail,
    UserFilters,
    UserListItem,
    UserRolesRequest,
    UserUpdateRequest,
)
from rbac_admin.services.audit import audit_service

logger = structlog.get_logger()


def _user_snapshot(user: User, role_keys: Optional[Iterable[str]] = None) -> dict:
    snapshot = {
        "id": str(user.id),
        "email": user.email,
        "full_name": user.full_name,
        "is_active": user.is_active,
        "status": user.status.value if isinstance(user.status, UserStatus) else user.status,
    }
    if role_keys is not None:
        snapshot["roles"] = sorted(role_keys)
    return snapshot


class UserService:
    async def _get_or_404(self, db: AsyncSession, user_id: UUID) -> User:
        user = await user_repository.get(db, id=user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def _roles_from_keys(self, db: AsyncSession, role_keys: Iterable[str]) -> list[Role]:
        keys = normalize_keys(role_keys)
        roles = await role_repository.get_by_keys(db, keys)
        missing = sorted(set(keys) - {role.role_key for role in roles})
        if missing:
            raise NotFoundError(f"Roles not found: {', '.join(missing)}", details={"missing": missing})
        return roles

    async def _role_keys(self, db: AsyncSession, user_id: UUID) -> list[str]:
        roles = await user_role_repository.list_roles_for_user(db, user_id)
        return [role.role_key for role in roles]

    async def _to_user_detail(self, db: AsyncSession, user: User) -> UserDetail:
        await db.refresh(user)
        detail = UserDetail.model_validate(user)
        detail.roles = await self._role_keys(db, user.id)
        return detail

    async def list_users(self, db: AsyncSession, filters: UserFilters) -> tuple[list[UserListItem], int]:
        users, total = await user_repository.filter_users(
            db,
            search=filters.search,
            status=filters.status,
            is_active=filters.is_active,
            skip=filters.skip,
            limit=filters.limit,
            sort_by=filters.sort_by,
            sort_order=filters.sort_order if isinstance(filters.sort_order, str) else filters.sort_order.value,
        )
        return [UserListItem.model_validate(user) for user in users], total

    async def get_user(self, db: AsyncSession, user_id: UUID) -> UserDetail:
        user = await self._get_or_404(db, user_id)
        return await self._to_user_detail(db, user)

    async def get_profile(self, db: AsyncSession, context: SessionContext) -> UserProfile:
        user = await self._get_or_404(db, context.user_id)
        resolved = await permission_resolver.resolve_permissions(db, user.id)
        return UserProfile(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            status=user.status,
            roles=sorted(resolved.roles),
            permissions=sorted(resolved.permissions),
            last_login_at=user.last_login_at,
        )

    async def create_user(
        self, db: AsyncSession, data: UserCreateRequest, actor: Optional[SessionContext] = None
    ) -> UserDetail:
        async with audit_service.audited(db, actor, "USER_CREATE", "user", data.email) as event:
            existing = await user_repository.get_by_email(db, data.email, include_deleted=True)
            if existing:
                raise ConflictError("Email already registered")

            roles = await self._roles_from_keys(db, data.role_keys)
            user = await user_repository.create(
                db,
                obj_in={
                    "email": data.email,
                    "full_name": data.full_name,
                    "hashed_password": get_password_hash(data.password),
                    "is_active": data.is_active,
                    "status": UserStatus(data.status),
                },
            )
            if roles:
                await user_role_repository.add(db, user.id, [role.id for role in roles])
            event.after = _user_snapshot(user, [role.role_key for role in roles])

        logger.info("User created by admin", user_id=str(user.id), email=user.email)
        return await self._to_user_detail(db, user)

    async def register(
        self, db: AsyncSession, data: RegisterRequest, ip_address: Optional[str] = None
    ) -> User:
        """
        Public sign-up.

        Creates an ACTIVE user holding every active default role. The new user
        is recorded as the actor of its own creation.
        """
        async with audit_service.audited(db, None, "USER_REGISTER", "user", data.email) as event:
            event.ip_address = ip_address
            if not settings.REGISTRATION_ENABLED:
                logger.warning("Public registration is disabled", attempted_email=data.email)
                raise PermissionDeniedError("Public registration is disabled. Contact an administrator.")

            if await user_repository.get_by_email(db, data.email, include_deleted=True):
                raise ConflictError("Email already registered")

            roles = await role_repository.get_defaults(db)
            user = await user_repository.create(
                db,
                obj_in={
                    "email": data.email,
                    "full_name": data.full_name,
                    "hashed_password": get_password_hash(data.password),
                    "is_active": True,
                    "status": UserStatus.ACTIVE,
                },
            )
            if roles:
                await user_role_repository.add(db, user.id, [role.id for role in roles])
            event.actor_id = str(user.id)
            event.actor_type = ActorType.USER.value
            event.after = _user_snapshot(user, [role.role_key for role in roles])

        logger.info("User registered", user_id=str(user.id), email=user.email, roles=len(roles))
        return user

    async def update_user(
        self, db: AsyncSession, user_id: UUID, data: UserUpdateRequest, actor: Optional[SessionContext] = None
    ) -> UserDetail:
        async with audit_service.audited(db, actor, "USER_UPDATE", "user", str(user_id)) as event:
            user = await self._get_or_404(db, user_id)
            event.target_key = user.email
            event.before = _user_snapshot(user)

            updates = data.model_dump(exclude_unset=True)
            updates.pop("email", None)
            if actor is not None and actor.user_id == user.id and updates.get("is_active") is False:
                raise ValidationError("You cannot deactivate your own account")

            await user_repository.update(db, db_obj=user, obj_in=updates)
            event.after = _user_snapshot(user)

        logger.info("User updated by admin", user_id=str(user_id), fields=sorted(updates))
        return await self._to_user_detail(db, user)

    async def update_status(
        self, db: AsyncSession, user_id: UUID, status: UserStatus, actor: Optional[SessionContext] = None
    ) -> UserDetail:
        async with audit_service.audited(db, actor, "USER_STATUS_UPDATE", "user", str(user_id)) as event:
            user = await self._get_or_404(db, user_id)
            event.target_key = user.email
            if actor is not None and actor.user_id == user.id and UserStatus(status) != UserStatus.ACTIVE:
                raise ValidationError("You cannot change your own status")

            event.before = _user_snapshot(user)
            user.status = UserStatus(status)
            if user.status != UserStatus.ACTIVE:
                await user_session_repository.revoke_all_for_user(db, user.id)
            await db.flush()
            event.after = _user_snapshot(user)

        logger.info("User status updated", user_id=str(user_id), status=str(status))
        return await self._to_user_detail(db, user)

    async def reset_password(
        self, db: AsyncSession, user_id: UUID, new_password: str, actor: Optional[SessionContext] = None
    ) -> None:
        async with audit_service.audited(db, actor, "USER_PASSWORD_RESET", "user", str(user_id)) as event:
            user = await self._get_or_404(db, user_id)
            event.target_key = user.email
            user.hashed_password = get_password_hash(new_password)
            revoked = await user_session_repository.revoke_all_for_user(db, user.id)
            event.details = {"revoked_sessions": revoked}

        logger.info("User password reset by admin", user_id=str(user_id))

    async def delete_user(
        self, db: AsyncSession, user_id: UUID, actor: Optional[SessionContext] = None
    ) -> None:
        async with audit_service.audited(db, actor, "USER_DELETE", "user", str(user_id)) as event:
            if actor is not None and actor.user_id == user_id:
                raise ValidationError("You cannot delete your own account")

            user = await self._get_or_404(db, user_id)
            event.target_key = user.email
            event.before = _user_snapshot(user)

            user.is_active = False
            await user_repository.remove(db, db_obj=user)
            await user_session_repository.revoke_all_for_user(db, user.id)

        logger.info("User soft-deleted by admin", user_id=str(user_id))

    async def get_user_roles(self, db: AsyncSession, user_id: UUID) -> list[Role]:
        await self._get_or_404(db, user_id)
        return await user_role_repository.list_roles_for_user(db, user_id)

    async def get_batch_user_roles(self, db: AsyncSession, user_ids: Iterable[UUID]) -> dict[UUID, list[Role]]:
        """Live roles per user; unknown ids map to an empty list"""
        return await user_role_repository.roles_by_user(db, user_ids)

    async def assign_roles(
        self, db: AsyncSession, user_id: UUID, data: UserRolesRequest, actor: Optional[SessionContext] = None
    ) -> list[Role]:
        """Additive: roles already held are kept"""
        async with audit_service.audited(db, actor, "USER_ROLE_ASSIGN", "user_role", str(user_id)) as event:
            user = await self._get_or_404(db, user_id)
            event.target_key = user.email
            roles = await self._roles_from_keys(db, data.role_keys)
            event.before = {"roles": await self._role_keys(db, user.id)}
            changed = await user_role_repository.add(db, user.id, [role.id for role in roles], data.expires_at)
            event.after = {"roles": await self._role_keys(db, user.id)}
            event.details = {"requested": [role.role_key for role in roles], "changed": changed}

        return await user_role_repository.list_roles_for_user(db, user_id)

    async def unassign_roles(
        self, db: AsyncSession, user_id: UUID, data: UserRolesRequest, actor: Optional[SessionContext] = None
    ) -> list[Role]:
        async with audit_service.audited(db, actor, "USER_ROLE_UNASSIGN", "user_role", str(user_id)) as event:
            user = await self._get_or_404(db, user_id)
            event.target_key = user.email
            roles = await self._roles_from_keys(db, data.role_keys)
            event.before = {"roles": await self._role_keys(db, user.id)}
            removed = await user_role_repository.remove(db, user.id, [role.id for role in roles])
            event.after = {"roles": await self._role_keys(db, user.id)}
            event.details = {"removed": removed}

        return await user_role_repository.list_roles_for_user(db, user_id)

    async def replace_roles(
        self, db: AsyncSession, user_id: UUID, data: UserRolesRequest, actor: Optional[SessionContext] = None
    ) -> list[Role]:
        """Delete-then-insert in one transaction"""
        async with audit_service.audited(db, actor, "USER_ROLE_REPLACE", "user_role", str(user_id)) as event:
            user = await self._get_or_404(db, user_id)
            event.target_key = user.email
            roles = await self._roles_from_keys(db, data.role_keys)
            event.before = {"roles": await self._role_keys(db, user.id)}
            await user_role_repository.replace(db, user.id, [role.id for role in roles], data.expires_at)
            event.after = {"roles": sorted(role.role_key for role in roles)}

        return await user_role_repository.list_roles_for_user(db, user_id)


user_service = UserService()
