"""
User service: identity mapping, self-registration and admin account controls.

The identity provider only vouches for a subject id and an email address;
every marketplace attribute (role, verification, categories, approval chain)
lives on the User row keyed by auth_id.
"""

import uuid
from typing import Optional

from fastapi import BackgroundTasks
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.errors import bad_request, forbidden, not_found
from medquote.models.catalog import Category
from medquote.models.user import User, QUOTATION_PREFERENCES
from medquote.services import notification_service
from medquote.services.guards import check_role

logger = structlog.get_logger()

SELF_SERVICE_ROLES = ("vendor", "buyer")


async def get_user_by_auth_id(session: AsyncSession, auth_id: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.auth_id == auth_id))
    return result.scalar_one_or_none()


async def get_user(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise not_found("User not found")
    return user


async def get_or_create_user(session: AsyncSession, identity: dict) -> User:
    """Resolve the caller's User, provisioning an unverified buyer on first contact."""
    user = await get_user_by_auth_id(session, identity["auth_id"])
    if user:
        return user

    email = identity.get("email") or ""
    user = User(
        auth_id=identity["auth_id"],
        email=email,
        name=identity.get("name") or email.split("@")[0] or "Buyer",
        role="buyer",
        verified=False,
        status="pending",
    )
    session.add(user)
    await session.flush()
    logger.info("user_auto_provisioned", user_id=str(user.id), role="buyer")
    return user


async def register_user(
    session: AsyncSession,
    identity: dict,
    role: str,
    company_name: str,
    phone: Optional[str] = None,
    address: Optional[str] = None,
    background_tasks: Optional[BackgroundTasks] = None,
) -> User:
    """Create or re-submit the caller's profile. Every registration awaits admin approval."""
    if role not in SELF_SERVICE_ROLES:
        raise bad_request("Role must be vendor or buyer")

    user = await get_user_by_auth_id(session, identity["auth_id"])
    if user is None:
        user = User(
            auth_id=identity["auth_id"],
            email=identity.get("email") or "",
            name=identity.get("name") or (identity.get("email") or "").split("@")[0],
            verified=False,
        )
        session.add(user)
    elif user.role == "admin":
        raise forbidden("Admins cannot change their role")

    user.role = role
    user.company_name = company_name
    user.phone = phone
    user.address = address
    user.status = "pending"
    await session.flush()

    # Admin alert over WhatsApp, same opt-in rules as everyone else
    admins = await session.execute(select(User).where(User.role == "admin"))
    for admin in admins.scalars().all():
        try:
            notification_service.queue_direct_message(
                background_tasks,
                admin,
                f"👤 *New User Registration*\n\nName: {user.name}\n"
                f"Role: {user.role}\nEmail: {user.email}",
            )
        except Exception as e:
            logger.error("admin_registration_alert_failed", admin_id=str(admin.id), error=str(e))

    logger.info("user_registered", user_id=str(user.id), role=role)
    return user


# ── Admin controls ──────────────────────────────────────────


async def list_users(
    session: AsyncSession,
    admin: User,
    role: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[User], int]:
    check_role(admin, "admin", message="Only admins can view all users")
    q = select(User)
    count_q = select(func.count(User.id))
    if role:
        q = q.where(User.role == role)
        count_q = count_q.where(User.role == role)
    if status:
        q = q.where(User.status == status)
        count_q = count_q.where(User.status == status)
    total = (await session.execute(count_q)).scalar() or 0
    result = await session.execute(
        q.order_by(User.registered_at.desc()).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total


async def verify_user(session: AsyncSession, admin: User, user_id: uuid.UUID) -> User:
    check_role(admin, "admin", message="Only admins can verify users")
    user = await get_user(session, user_id)
    user.verified = True
    if user.role in ("vendor", "buyer"):
        await notification_service.notify(
            session,
            user.id,
            f"{user.role}_approved",
            "Account Verified",
            "Your account has been verified. You now have full access to the marketplace.",
        )
    await session.flush()
    logger.info("user_verified", user_id=str(user.id), admin_id=str(admin.id))
    return user


async def toggle_user_verification(
    session: AsyncSession, admin: User, user_id: uuid.UUID
) -> User:
    check_role(admin, "admin", message="Only admins can toggle user status")
    user = await get_user(session, user_id)
    user.verified = not user.verified
    await session.flush()
    logger.info("user_verification_toggled", user_id=str(user.id), verified=user.verified)
    return user


async def approve_user(
    session: AsyncSession,
    admin: User,
    user_id: uuid.UUID,
    background_tasks: Optional[BackgroundTasks] = None,
) -> User:
    check_role(admin, "admin", message="Only admins can approve users")
    user = await get_user(session, user_id)
    user.status = "approved"
    await session.flush()
    if user.email_notifications:
        notification_service.queue_email(
            background_tasks,
            "account_approved",
            [user.email],
            {"name": user.name, "role": user.role},
        )
    logger.info("user_approved", user_id=str(user.id), admin_id=str(admin.id))
    return user


async def reject_user(session: AsyncSession, admin: User, user_id: uuid.UUID) -> User:
    check_role(admin, "admin", message="Only admins can reject users")
    user = await get_user(session, user_id)
    user.status = "rejected"
    await session.flush()
    logger.info("user_rejected", user_id=str(user.id), admin_id=str(admin.id))
    return user


async def assign_categories_to_vendor(
    session: AsyncSession, admin: User, vendor_id: uuid.UUID, category_ids: list[uuid.UUID]
) -> User:
    check_role(admin, "admin", message="Only admins can assign categories")
    vendor = await get_user(session, vendor_id)
    if vendor.role != "vendor":
        raise bad_request("Categories can only be assigned to vendors")

    unique_ids = list(dict.fromkeys(category_ids))
    if unique_ids:
        found = await session.execute(select(Category.id).where(Category.id.in_(unique_ids)))
        if len(found.all()) != len(unique_ids):
            raise not_found("Category not found")
    vendor.categories = [str(c) for c in unique_ids]
    await session.flush()
    logger.info("vendor_categories_assigned", vendor_id=str(vendor.id), count=len(unique_ids))
    return vendor


# ── Self-service ────────────────────────────────────────────


async def update_quotation_preference(
    session: AsyncSession, user: User, preference: str
) -> User:
    check_role(user, "vendor", message="Only vendors can set quotation preferences")
    if preference not in QUOTATION_PREFERENCES:
        raise bad_request(f"Preference must be one of: {', '.join(QUOTATION_PREFERENCES)}")
    user.quotation_preference = preference
    await session.flush()
    return user


async def update_notification_preferences(
    session: AsyncSession,
    user: User,
    whatsapp_notifications: Optional[bool] = None,
    email_notifications: Optional[bool] = None,
) -> User:
    if whatsapp_notifications is not None:
        user.whatsapp_notifications = whatsapp_notifications
    if email_notifications is not None:
        user.email_notifications = email_notifications
    await session.flush()
    return user


async def update_profile(session: AsyncSession, user: User, **fields) -> User:
    """Patch profile fields; None values are left unchanged."""
    allowed = {
        "name",
        "company_name",
        "phone",
        "address",
        "avatar",
        "organization_role",
        "approval_level",
        "can_approve_up_to_cents",
    }
    unknown = set(fields) - allowed
    if unknown:
        raise bad_request(f"Unknown profile fields: {', '.join(sorted(unknown))}")
    if fields.get("approval_level") is not None and fields["approval_level"] < 0:
        raise bad_request("Approval level cannot be negative")
    for key, value in fields.items():
        if value is not None:
            setattr(user, key, value)
    await session.flush()
    return user
