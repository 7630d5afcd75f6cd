import threading

from reflection.controller import TurnController
from tasks.task_list import TaskList


class SessionContext:
    """
    Browser-session-scoped state.
    Owns the task list and the turn controller for one user.
    """

    def __init__(self, scorer):
        self.task_list = TaskList()
        self.controller = TurnController(scorer=scorer, task_list=self.task_list)

        # one mutation (and one scorer call) in flight at a time
        self.lock = threading.Lock()
