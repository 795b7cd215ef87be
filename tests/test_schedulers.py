import pytest
import asyncio
import logging
import threading
import time
from unittest.mock import Mock, call

from quickpromise import scheduler, set_default_scheduler, get_default_scheduler
from quickpromise.promise import Promise, PromiseDeadlockError
from quickpromise.schedulers import (Scheduler, QueueScheduler, ThreadScheduler,
        AsyncioScheduler, SchedulerError)

class MyError(Exception): pass

@pytest.fixture
def qs():
    return QueueScheduler()

@pytest.fixture
def ts():
    return ThreadScheduler()

@pytest.fixture
def default_scheduler():
    previous = set_default_scheduler(None)
    yield
    set_default_scheduler(previous)

@pytest.fixture
def mock():
    return Mock()


def test_fromstring():
    assert isinstance(scheduler('queue'), QueueScheduler)
    ts = scheduler('thread:promises')
    assert isinstance(ts, ThreadScheduler)
    assert ts.name == 'promises'
    assert scheduler('thread').name == 'ThreadScheduler'
    with pytest.raises(ValueError):
        scheduler('bogus')

def test_base_scheduler_defer():
    with pytest.raises(NotImplementedError):
        Scheduler().defer(lambda: None)

def test_queue_fifo(qs, mock):
    qs.defer(mock.a)
    qs.defer(mock.b)
    assert len(qs) == 2
    assert mock.mock_calls == []
    assert qs.run() == 2
    assert mock.mock_calls == [call.a(), call.b()]
    assert len(qs) == 0

def test_queue_runs_tasks_deferred_meanwhile(qs, mock):
    qs.defer(lambda: qs.defer(mock.c))
    qs.defer(mock.b)
    assert qs.run() == 3
    assert mock.mock_calls == [call.b(), call.c()]

def test_queue_run_once(qs, mock):
    assert not qs.run_once()
    qs.defer(mock.a)
    qs.defer(mock.b)
    assert qs.run_once()
    assert mock.mock_calls == [call.a()]

def test_queue_not_reentrant(qs):
    errors = []
    def task():
        try:
            qs.run()
        except SchedulerError as e:
            errors.append(e)
    qs.defer(task)
    qs.run()
    assert len(errors) == 1

def test_queue_wait_from_other_thread(qs):
    d = Promise.deferred(qs)
    started = threading.Event()
    def task():
        started.set()
        time.sleep(0.1)
        d.resolve(1)
    qs.defer(task)
    runner = threading.Thread(target=qs.run)
    runner.start()
    started.wait()
    # another thread's task is running, that is no deadlock
    assert d.promise.result(timeout=1.0) == 1
    runner.join()

def test_queue_runners_take_turns(qs):
    active = []
    overlaps = []
    def task():
        active.append(1)
        if len(active) > 1:
            overlaps.append(1)
        time.sleep(0.01)
        active.pop()
    for _ in range(20):
        qs.defer(task)
    runners = [threading.Thread(target=qs.run) for _ in range(4)]
    for runner in runners:
        runner.start()
    for runner in runners:
        runner.join()
    assert len(qs) == 0
    assert overlaps == []

def test_queue_task_error_is_logged(qs, mock, caplog):
    qs.defer(Mock(side_effect=MyError()))
    qs.defer(mock.b)
    with caplog.at_level(logging.ERROR, logger='quickpromise.schedulers'):
        assert qs.run() == 2
    assert mock.mock_calls == [call.b()]
    assert 'raised' in caplog.text

def test_thread_scheduler_basic(ts):
    log = []
    assert not ts._running.is_set()
    ts.defer(lambda: time.sleep(0.1))
    ts.defer(lambda: log.append(threading.current_thread().name))
    assert ts._running.is_set()
    ts.join()
    assert not ts._running.is_set()
    assert log == ['ThreadScheduler']

def test_thread_scheduler_restarts(ts, mock):
    ts.defer(mock.a)
    ts.join()
    ts.defer(mock.b)
    ts.join()
    assert mock.mock_calls == [call.a(), call.b()]

def test_thread_scheduler_fifo(ts):
    log = []
    for i in range(100):
        ts.defer(lambda i=i: log.append(i))
    ts.join()
    assert log == list(range(100))

def test_thread_scheduler_deadlock(ts):
    d = Promise.deferred(ts)
    child = Promise.resolve(1, ts).then(lambda x: d.promise.result())
    with pytest.raises(PromiseDeadlockError):
        child.result(timeout=1.0)

def test_asyncio_scheduler():
    async def main():
        loop = asyncio.get_running_loop()
        s = scheduler('asyncio')
        assert s.loop is loop
        future = loop.create_future()
        Promise.resolve(1, s).then(lambda x: x + 1).then(future.set_result)
        return await future
    assert asyncio.run(main()) == 2

def test_asyncio_scheduler_deadlock():
    async def main():
        s = AsyncioScheduler()
        with pytest.raises(PromiseDeadlockError):
            Promise.deferred(s).promise.result(timeout=0.1)
    asyncio.run(main())

def test_asyncio_scheduler_from_other_thread():
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever)
    thread.start()
    try:
        s = AsyncioScheduler(loop)
        assert Promise.resolve(3, s).then(lambda x: x * 2).result(timeout=1.0) == 6
    finally:
        loop.call_soon_threadsafe(loop.stop)
        thread.join()
        loop.close()

def test_default_scheduler(default_scheduler):
    assert isinstance(get_default_scheduler(), QueueScheduler)
    assert Promise.deferred().promise.scheduler is get_default_scheduler()

def test_default_scheduler_runs_nothing_by_itself(default_scheduler, mock):
    mock.handler.return_value = None
    Promise.resolve(1).then(mock.handler)
    time.sleep(0.05)
    assert mock.mock_calls == []
    get_default_scheduler().run()
    assert mock.mock_calls == [call.handler(1)]

def test_set_default_scheduler(default_scheduler):
    qs = QueueScheduler()
    set_default_scheduler(qs)
    assert Promise.resolve(1).scheduler is qs
    previous = set_default_scheduler('thread:promises')
    assert previous is qs
    p = Promise.resolve(1).then(lambda x: threading.current_thread().name)
    assert p.result(timeout=1.0) == 'promises'
