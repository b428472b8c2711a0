import strawberry

from models import Task, TaskStatus, User

TaskStatusType = strawberry.enum(TaskStatus, name="TaskStatus")


@strawberry.type(name="User")
class UserType:
    id: strawberry.ID
    name: str
    email: str
    tasks: list["TaskType"] | None = None


@strawberry.type(name="Task")
class TaskType:
    id: strawberry.ID
    title: str
    description: str | None
    status: TaskStatusType
    user: UserType | None = None


@strawberry.type
class AuthPayload:
    user: UserType
    token: str
    message: str


# Every row leaves the resolver layer through one of these two functions


def to_user_type(user: User, with_tasks: bool = False) -> UserType:
    return UserType(
        id=strawberry.ID(str(user.id)),
        name=user.name or "",
        email=user.email or "",
        tasks=[to_task_type(task, with_user=False) for task in user.tasks] if with_tasks else None,
    )


def to_task_type(task: Task, with_user: bool = True) -> TaskType:
    owner = task.user if with_user else None
    return TaskType(
        id=strawberry.ID(str(task.id)),
        title=task.title or "",
        description=task.description,
        status=task.status or TaskStatus.PENDING,
        user=to_user_type(owner) if owner is not None else None,
    )
