# tasks/task_list.py

import uuid
from dataclasses import dataclass, field

from reflection.errors import InvalidInput, OutOfRange


@dataclass
class Task:
    text: str
    completed: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        return {"id": self.id, "text": self.text, "completed": self.completed}


class TaskList:
    """
    Ordered tasks, insertion order.

    Positional operations match what the list shows on screen; after a
    remove every later index shifts down by one, so stale indices must
    not be reused. The *_by_id variants are stable across removals.
    """

    def __init__(self):
        self._tasks: list[Task] = []

    def __len__(self):
        return len(self._tasks)

    def __iter__(self):
        return iter(list(self._tasks))

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    def to_payload(self) -> list[dict]:
        return [t.to_dict() for t in self._tasks]

    # -------------------------------------------------
    # Positional
    # -------------------------------------------------

    def append(self, text: str) -> Task:
        text = (text or "").strip()
        if not text:
            raise InvalidInput("Task text must not be empty")

        task = Task(text=text)
        self._tasks.append(task)
        return task

    def toggle(self, index: int) -> Task:
        task = self._tasks[self._check_index(index)]
        task.completed = not task.completed
        return task

    def remove(self, index: int) -> Task:
        return self._tasks.pop(self._check_index(index))

    def _check_index(self, index) -> int:
        if isinstance(index, bool) or not isinstance(index, int):
            raise OutOfRange(f"Invalid task index: {index!r}")
        if index < 0 or index >= len(self._tasks):
            raise OutOfRange(f"Task index {index} out of range (0..{len(self._tasks) - 1})")
        return index

    # -------------------------------------------------
    # By id
    # -------------------------------------------------

    def index_of(self, task_id: str) -> int:
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                return i
        raise OutOfRange(f"Unknown task id: {task_id}")

    def get(self, task_id: str) -> Task:
        return self._tasks[self.index_of(task_id)]

    def toggle_by_id(self, task_id: str) -> Task:
        return self.toggle(self.index_of(task_id))

    def remove_by_id(self, task_id: str) -> Task:
        return self.remove(self.index_of(task_id))
