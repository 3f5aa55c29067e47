"""User account endpoints, including profile picture uploads."""
import logging
from typing import Optional, Sequence

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import hash_password
from ..dependencies import get_db_session, get_notifier, get_user_or_404
from ..enums import ChangeKind
from ..errors import ConflictError, NotFoundError, ValidationError
from ..events import ChangeEvent
from ..models import User
from ..notifier import ChangeNotifier
from ..schemas import MessageResponse, UserCreate, UserRead
from ..uploads import PictureStore, get_picture_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def _has_file(upload: Optional[UploadFile]) -> bool:
    return upload is not None and bool(upload.filename)


def _snapshot(user: User) -> dict:
    return UserRead.model_validate(user).model_dump()


async def _commit_upload(session: AsyncSession, store: PictureStore, filename: Optional[str]) -> None:
    """Commit, removing the just-stored picture if the row does not land."""

    try:
        await session.commit()
    except SQLAlchemyError:
        store.discard(filename)
        raise


@router.get("", response_model=list[UserRead])
async def list_users(session: AsyncSession = Depends(get_db_session)) -> Sequence[User]:
    """Return every user, oldest account first."""

    result = await session.execute(select(User).order_by(User.id))
    return list(result.scalars().all())


@router.get("/{user_id}", response_model=UserRead)
async def get_user(user: User = Depends(get_user_or_404)) -> User:
    """Return one user's profile."""

    return user


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    email: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    role: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    employee_number: Optional[str] = Form(None),
    f_name: Optional[str] = Form(None),
    l_name: Optional[str] = Form(None),
    p_pic: Optional[UploadFile] = File(None),
    session: AsyncSession = Depends(get_db_session),
    notifier: ChangeNotifier = Depends(get_notifier),
    store: PictureStore = Depends(get_picture_store),
) -> User:
    """Create an account from a multipart form with an optional picture."""

    if not all([email, username, role, password, f_name, l_name]):
        raise ValidationError("Required fields missing")
    try:
        fields = UserCreate(
            email=email,
            username=username,
            role=role,
            password=password,
            employee_number=employee_number or None,
            f_name=f_name,
            l_name=l_name,
        )
    except PydanticValidationError as exc:
        raise ValidationError(exc.errors(include_url=False, include_context=False)) from exc
    if _has_file(p_pic):
        store.validate(p_pic)

    existing = await session.execute(
        select(User.id).where(or_(User.email == fields.email, User.username == fields.username))
    )
    if existing.first() is not None:
        raise ConflictError("Email or username already in use")

    picture = store.save(p_pic) if _has_file(p_pic) else None
    user = User(
        email=fields.email,
        username=fields.username,
        role=fields.role,
        password=hash_password(fields.password),
        employee_number=fields.employee_number,
        f_name=fields.f_name,
        l_name=fields.l_name,
        p_pic=picture,
    )
    session.add(user)
    try:
        await _commit_upload(session, store, picture)
    except IntegrityError as exc:
        # Lost a race with a concurrent signup for the same email/username.
        await session.rollback()
        logger.info("Duplicate user rejected at commit: %s", exc.orig)
        raise ConflictError("Email or username already in use") from exc

    notifier.publish(ChangeEvent(kind=ChangeKind.USER_CREATED, payload=_snapshot(user)))
    return user


@router.put("/{user_id}", response_model=MessageResponse)
async def update_user(
    user_id: int,
    f_name: Optional[str] = Form(None),
    l_name: Optional[str] = Form(None),
    p_pic: Optional[UploadFile] = File(None),
    session: AsyncSession = Depends(get_db_session),
    notifier: ChangeNotifier = Depends(get_notifier),
    store: PictureStore = Depends(get_picture_store),
) -> MessageResponse:
    """Edit a user's name and, when a file is sent, their picture."""

    if not f_name or not l_name:
        raise ValidationError("First name and last name are required")
    if _has_file(p_pic):
        store.validate(p_pic)

    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    user.f_name = f_name
    user.l_name = l_name
    picture = store.save(p_pic) if _has_file(p_pic) else None
    if picture is not None:
        user.p_pic = picture
    await _commit_upload(session, store, picture)

    notifier.publish(ChangeEvent(kind=ChangeKind.USER_UPDATED, payload=_snapshot(user)))
    return MessageResponse(message="Profile updated successfully")


@router.put("/{user_id}/pic", response_model=MessageResponse)
async def update_user_picture(
    user_id: int,
    p_pic: Optional[UploadFile] = File(None),
    session: AsyncSession = Depends(get_db_session),
    notifier: ChangeNotifier = Depends(get_notifier),
    store: PictureStore = Depends(get_picture_store),
) -> MessageResponse:
    """Replace only the profile picture."""

    if not _has_file(p_pic):
        raise ValidationError("No profile picture uploaded")
    store.validate(p_pic)

    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    picture = store.save(p_pic)
    user.p_pic = picture
    await _commit_upload(session, store, picture)

    notifier.publish(
        ChangeEvent(kind=ChangeKind.USER_PICTURE_UPDATED, payload={"id": user.id, "p_pic": picture})
    )
    return MessageResponse(message="Profile picture updated successfully")
