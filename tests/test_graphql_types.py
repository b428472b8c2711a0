from graphql_types import to_task_type, to_user_type
from models import Task, TaskStatus, User


def test_task_mapping_fills_defaults_for_missing_fields():
    task = Task(id=7, title=None, description=None, status=None, user_id=1)

    dto = to_task_type(task)

    assert dto.id == "7"
    assert dto.title == ""
    assert dto.description is None
    assert dto.status is TaskStatus.PENDING
    assert dto.user is None


def test_task_mapping_attaches_owner_public_fields():
    owner = User(id=3, name="Alice", email="alice@example.com", password="hash")
    task = Task(id=1, title="A", description="d", status=TaskStatus.COMPLETED, user=owner)

    dto = to_task_type(task)

    assert dto.user.id == "3"
    assert dto.user.name == "Alice"
    assert dto.user.tasks is None
    assert not hasattr(dto.user, "password")


def test_user_mapping_with_tasks_does_not_recurse_into_owner():
    owner = User(id=3, name="Alice", email="alice@example.com", password="hash")
    Task(id=1, title="A", status=TaskStatus.PENDING, user=owner)
    Task(id=2, title="B", status=TaskStatus.IN_PROGRESS, user=owner)

    dto = to_user_type(owner, with_tasks=True)

    assert [task.title for task in dto.tasks] == ["A", "B"]
    assert all(task.user is None for task in dto.tasks)
    assert to_user_type(owner).tasks is None
