import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import or_
from sqlalchemy.future import select
from household.models.user import User
from household.schemas.user import UserCreate, UserUpdate
from household.core.errors import Conflict, NotFound, ValidationError
from household.core.security import hash_password, verify_password

logger = structlog.get_logger(__name__)

async def get_user_by_email(db: AsyncSession, email:str):
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()

async def get_user_by_username(db: AsyncSession, username: str):
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()

async def get_user_by_id(db: AsyncSession, id:int):
    result = await db.execute(select(User).where(User.id == id))
    return result.scalar_one_or_none()

async def get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await get_user_by_id(db, user_id)
    if not user:
        raise NotFound("User not found.")
    return user

async def find_user_by_credentials(db: AsyncSession, credentials: str):
    value = credentials.strip()
    q = select(User).where(
        or_(
            User.username == value,
            User.email == value.lower(),
            User.phone_number == value,
        )
    )
    result = await db.execute(q)
    return result.scalars().first()

async def authenticate_user(db: AsyncSession, credentials: str, password: str):
    user = await find_user_by_credentials(db, credentials)
    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return user

async def create_user(db: AsyncSession, data: UserCreate):
    username = data.username.strip()

    if await get_user_by_username(db, username):
        raise Conflict("Username already exists")

    if await get_user_by_email(db, data.email):
        raise Conflict("Email address already exists")

    user = User(
        username = username,
        email = data.email.lower(),
        password_hash = hash_password(data.password),
        first_name = data.first_name,
        last_name = data.last_name,
        phone_number = data.phone_number,
        bio = data.bio,
    )

    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("user_registered", user_id=user.id, username=user.username)
    return user

async def edit_user(db : AsyncSession, data: UserUpdate, user_id: int):
    user = await get_user_or_404(db, user_id)

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No valid fields provided for update.")

    if "username" in changes:
        username = (changes["username"] or "").strip()
        if not username:
            raise ValidationError("Username cannot be empty.")
        existing = await get_user_by_username(db, username)
        if existing and existing.id != user.id:
            raise Conflict("Username already exists")
        user.username = username

    if "email" in changes:
        if not changes["email"]:
            raise ValidationError("Email address cannot be empty.")
        existing = await get_user_by_email(db, changes["email"])
        if existing and existing.id != user.id:
            raise Conflict("Email address already exists")
        user.email = changes["email"].lower()

    for field in ("first_name", "last_name", "phone_number", "bio"):
        if field in changes:
            setattr(user, field, changes[field])

    await db.commit()
    await db.refresh(user)

    logger.info("user_updated", user_id=user.id, fields=sorted(changes))
    return user
