import logging

import strawberry
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from starlette.concurrency import run_in_threadpool
from strawberry.types import Info

from database import commit
from errors import DuplicateEmail, Forbidden, InvalidCredentials, NotFound, Unauthorized
from graphql_types import AuthPayload, TaskStatusType, TaskType, UserType, to_task_type, to_user_type
from models import Task, User
from schemas import TaskCreate, TaskUpdate, UserCreate, UserLogin, validate_input
from security import (
    create_access_token,
    end_session,
    get_password_hash,
    start_session,
    verify_password,
)

logger = logging.getLogger(__name__)

# Primary keys are 64-bit integers on every backend we run on
MIN_ID = -(2**63)
MAX_ID = 2**63 - 1


def _db(info: Info) -> Session:
    return info.context["db"]


def current_user(info: Info) -> User | None:
    return info.context.get("user")


def require_user(info: Info) -> User:
    user = current_user(info)
    if user is None:
        raise Unauthorized()
    return user


def _parse_id(raw: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise NotFound() from None
    if not MIN_ID <= value <= MAX_ID:
        raise NotFound()
    return value


def get_owned_task(db: Session, task_id: int, user: User) -> Task:
    """Load a task for mutation: NotFound if absent, Forbidden if someone else owns it."""
    task = db.get(Task, task_id)
    if task is None:
        raise NotFound()
    if task.user_id != user.id:
        logger.warning("User %s tried to modify task %s owned by %s", user.id, task.id, task.user_id)
        raise Forbidden()
    return task


def _set_args(**kwargs) -> dict:
    # Drop arguments the client did not send at all
    return {key: value for key, value in kwargs.items() if value is not strawberry.UNSET}


# --- Blocking work ---
# Database access and bcrypt run here, in the threadpool, never on the event loop.

def read_users(db: Session) -> list[UserType]:
    rows = db.scalars(select(User).options(selectinload(User.tasks)).order_by(User.id))
    return [to_user_type(user, with_tasks=True) for user in rows]


def read_tasks(db: Session, owner: User | None = None) -> list[TaskType]:
    query = select(Task).options(selectinload(Task.user)).order_by(Task.id)
    if owner is not None:
        query = query.where(Task.user_id == owner.id)
    return [to_task_type(task) for task in db.scalars(query)]


def register_user(db: Session, data: UserCreate) -> AuthPayload:
    # Check if the email is already registered
    if db.scalar(select(User.id).where(User.email == data.email)) is not None:
        raise DuplicateEmail()

    user = User(name=data.name, email=data.email, password=get_password_hash(data.password))
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email
        db.rollback()
        raise DuplicateEmail() from None
    commit(db)

    logger.info("Registered user %s (%s)", user.id, user.email)
    return AuthPayload(
        user=to_user_type(user),
        token=create_access_token(user.id),
        message="Registration successful",
    )


def login_user(db: Session, request, response, data: UserLogin) -> AuthPayload:
    user = db.scalar(select(User).where(User.email == data.email))
    if user is None or not verify_password(data.password, user.password):
        logger.info("Failed login attempt for %s", data.email)
        raise InvalidCredentials()

    start_session(db, request, response, user)
    logger.info("User %s logged in", user.id)
    return AuthPayload(
        user=to_user_type(user),
        token=create_access_token(user.id),
        message="Login successful",
    )


def create_user_task(db: Session, user: User, data: TaskCreate) -> TaskType:
    task = Task(title=data.title, description=data.description, status=data.status, user_id=user.id)
    task.user = user
    db.add(task)
    commit(db)

    logger.info("User %s created task %s", user.id, task.id)
    return to_task_type(task)


def update_user_task(db: Session, user: User, task_id: int, data: TaskUpdate) -> TaskType:
    task = get_owned_task(db, task_id, user)
    changes = data.changes()
    for key, value in changes.items():
        setattr(task, key, value)
    commit(db)

    logger.info("User %s updated task %s (%s)", user.id, task.id, ", ".join(sorted(changes)) or "no changes")
    return to_task_type(task)


def delete_user_task(db: Session, user: User, task_id: int) -> str:
    get_owned_task(db, task_id, user)

    # Scoped delete: the row must match both the id and the caller
    result = db.execute(delete(Task).where(Task.id == task_id, Task.user_id == user.id))
    if result.rowcount == 0:
        db.rollback()
        raise NotFound()
    commit(db)

    logger.info("User %s deleted task %s", user.id, task_id)
    return "Task deleted successfully"


@strawberry.type
class Query:
    @strawberry.field
    async def users(self, info: Info) -> list[UserType]:
        require_user(info)
        return await run_in_threadpool(read_users, _db(info))

    @strawberry.field
    async def tasks(self, info: Info) -> list[TaskType]:
        require_user(info)
        return await run_in_threadpool(read_tasks, _db(info))

    @strawberry.field
    async def my_tasks(self, info: Info) -> list[TaskType]:
        user = require_user(info)
        logger.debug("Fetching tasks for user %s", user.id)
        return await run_in_threadpool(read_tasks, _db(info), user)

    @strawberry.field
    def me(self, info: Info) -> UserType | None:
        # The user was loaded with the request context; nothing left to fetch
        user = current_user(info)
        if user is None:
            return None
        return to_user_type(user)


@strawberry.type
class Mutation:
    @strawberry.mutation
    async def register(self, info: Info, name: str, email: str, password: str) -> AuthPayload:
        data = validate_input(UserCreate, name=name, email=email, password=password)
        return await run_in_threadpool(register_user, _db(info), data)

    @strawberry.mutation
    async def login(self, info: Info, email: str, password: str) -> AuthPayload:
        data = validate_input(UserLogin, email=email, password=password)
        return await run_in_threadpool(
            login_user, _db(info), info.context["request"], info.context["response"], data
        )

    @strawberry.mutation
    async def logout(self, info: Info) -> bool:
        user = current_user(info)
        await run_in_threadpool(end_session, _db(info), info.context["request"], info.context["response"])
        if user is not None:
            logger.info("User %s logged out", user.id)
        return True

    @strawberry.mutation
    async def create_task(
        self,
        info: Info,
        title: str,
        description: str | None = None,
        status: TaskStatusType | None = None,
    ) -> TaskType:
        user = require_user(info)
        fields = {"title": title, "description": description}
        if status is not None:
            fields["status"] = status
        data = validate_input(TaskCreate, **fields)
        return await run_in_threadpool(create_user_task, _db(info), user, data)

    @strawberry.mutation
    async def update_task(
        self,
        info: Info,
        id: strawberry.ID,
        title: str | None = strawberry.UNSET,
        description: str | None = strawberry.UNSET,
        status: TaskStatusType | None = strawberry.UNSET,
    ) -> TaskType:
        user = require_user(info)
        task_id = _parse_id(id)
        data = validate_input(TaskUpdate, **_set_args(title=title, description=description, status=status))
        return await run_in_threadpool(update_user_task, _db(info), user, task_id, data)

    @strawberry.mutation
    async def delete_task(self, info: Info, id: strawberry.ID) -> str:
        user = require_user(info)
        return await run_in_threadpool(delete_user_task, _db(info), user, _parse_id(id))


schema = strawberry.Schema(query=Query, mutation=Mutation)
