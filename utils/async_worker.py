import threading
from queue import Queue
from typing import Optional

from collections.abc import Callable


class ThreadedAsyncWorker:
    """
    Minimal async worker used for background heatmap builds.
    Runs tasks in a dedicated thread and invokes an optional callback with the result.
    A task raising an exception hands the exception object to the callback instead.
    """

    def __init__(self, name: str):
        self.name = name
        self.task_queue: Queue = Queue()
        self.callback_lock = threading.Lock()
        self.worker_thread = threading.Thread(target=self._run, daemon=True, name=name)
        self._started = False

    def _run(self) -> None:
        while True:
            task = self.task_queue.get()
            if task is None:
                break

            task_function, args, kwargs, callback = task
            try:
                result = task_function(*args, **kwargs)
            except Exception as exc:  # propagate errors via callback
                result = exc

            if callback:
                with self.callback_lock:
                    callback(result)

    def enqueue_task(
        self,
        task_function: Callable,
        callback: Optional[Callable] = None,
        args=(),
        kwargs=None,
    ) -> None:
        if kwargs is None:
            kwargs = {}
        self.task_queue.put((task_function, args, kwargs, callback))

    def stop(self, timeout: Optional[float] = None) -> None:
        """Let queued tasks finish, then join the thread."""
        self.task_queue.put(None)
        if self._started:
            self.worker_thread.join(timeout)
        self._started = False

    def start(self) -> None:
        if not self._started:
            self._started = True
            self.worker_thread.start()

    def is_alive(self) -> bool:
        return self.worker_thread.is_alive()
