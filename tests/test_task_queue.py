import threading

import pytest

from modorder.task_queue import CommandQueue, WorkerPool

TIMEOUT = 10


@pytest.fixture
def queue():
    q = CommandQueue()
    yield q
    q.shutdown()


@pytest.fixture
def pool():
    p = WorkerPool(2)
    yield p
    p.shutdown()


def test_commands_run_in_submission_order(queue):
    seen = []
    futures = [queue.submit(seen.append, i) for i in range(50)]
    for future in futures:
        future.result(TIMEOUT)
    assert seen == list(range(50))


def test_commands_run_on_one_thread(queue):
    names = {queue.submit(lambda: threading.current_thread().name).result(TIMEOUT) for _ in range(10)}
    assert len(names) == 1


def test_drop_pending_leaves_running_command(queue):
    started, gate = threading.Event(), threading.Event()

    def hold():
        started.set()
        gate.wait(TIMEOUT)
        return "done"

    running = queue.submit(hold)
    assert started.wait(TIMEOUT)
    waiting = [queue.submit(lambda: "late") for _ in range(3)]

    assert queue.drop_pending() == 3
    gate.set()
    assert running.result(TIMEOUT) == "done"
    assert all(f.cancelled() for f in waiting)


def test_then_posts_result_to_queue(queue, pool):
    owner = queue.submit(threading.get_ident).result(TIMEOUT)
    future = pool.then(lambda x: x * 2, lambda y: (y + 1, threading.get_ident()), queue, 20)
    value, thread_id = future.result(TIMEOUT)
    assert value == 41
    assert thread_id == owner


def test_then_propagates_worker_errors(queue, pool):
    def fail():
        raise FileNotFoundError("gone")

    future = pool.then(fail, lambda _: "unreachable", queue)
    with pytest.raises(FileNotFoundError):
        future.result(TIMEOUT)


def test_then_propagates_follow_up_errors(queue, pool):
    def reject(_):
        raise ValueError("bad")

    with pytest.raises(ValueError):
        pool.then(lambda: 1, reject, queue).result(TIMEOUT)


def test_then_prepares_arguments_on_the_queue(queue, pool):
    state = {"root": "before"}
    queue.submit(state.update, root="after")
    future = pool.then(lambda root: root.upper(), lambda value: value + "!", queue, prepare=lambda: (state["root"],))
    assert future.result(TIMEOUT) == "AFTER!"


def test_then_cancelled_while_preparing(queue, pool):
    started, gate = threading.Event(), threading.Event()

    def hold():
        started.set()
        gate.wait(TIMEOUT)

    queue.submit(hold)
    assert started.wait(TIMEOUT)
    future = pool.then(lambda: 1, lambda value: value, queue, prepare=lambda: ())
    assert queue.drop_pending() == 1
    gate.set()
    assert future.cancelled()
