# coding: utf8
'''Schedulers run deferred tasks at a later time, in FIFO order.

Promises never call handlers synchronously. Instead they hand a task to their
scheduler via .defer(), which must run it after the current synchronous
execution has finished, and after all tasks deferred before it.

Classes defined here:
 * Scheduler: base class
 * QueueScheduler: a plain queue, run by whoever calls .run().
 * ThreadScheduler: runs the tasks on a worker thread.
 * AsyncioScheduler: runs the tasks on an asyncio event loop.

The scheduler used when none is given explicitly is configured with
set_default_scheduler().
'''

__all__ = [
    'Scheduler',
    'QueueScheduler',
    'ThreadScheduler',
    'AsyncioScheduler',
    'get_default_scheduler',
    'set_default_scheduler',
]

import asyncio
from collections import deque
import logging
import queue
import threading

from .errors import PromiseDeadlockError, SchedulerError
from .util import subclasses

L = lambda: logging.getLogger(__name__)


class Scheduler(object):
    '''Defers tasks (callables without arguments) to a later turn.

    Subclass and override `defer`. If waiting for an event on the calling
    thread can keep the scheduler from running, override `wait` as well.

    A task that raises is logged and otherwise ignored; the following tasks
    run as usual.
    '''
    # The shorthand to use for string creation.
    shorthand = ''

    @classmethod
    def fromstring(cls, expression):
        '''Creates a scheduler from a given string expression.

        The expression must be "<shorthand>:<specific parameters>",
        with shorthand being the wanted Scheduler's .shorthand property.
        For the specific parameters, see the respective Scheduler's
        .fromstring method.
        '''
        shorthand, _, expr = expression.partition(':')
        for subclass in subclasses(cls):
            if subclass.shorthand == shorthand:
                return subclass.fromstring(expression)
        raise ValueError('Could not find a scheduler class with shorthand %s'%shorthand)

    def defer(self, task):
        '''run task() later. Override me.'''
        raise NotImplementedError("Override me")

    def wait(self, event, timeout):
        '''Blocks until the threading.Event is set, at most `timeout` seconds.

        Returns the event's state. Raises PromiseDeadlockError if the event
        cannot become set while the caller blocks.
        '''
        return event.wait(timeout)

    def _run_task(self, task):
        try:
            task()
        except Exception:
            L().exception('%s: deferred task %r raised'%(self.__class__.__name__, task))


class QueueScheduler(Scheduler):
    '''Collects tasks until someone calls .run() or .run_once().

    Execution order is fully deterministic, which makes this the scheduler
    of choice for tests. .defer() may be called from any thread. If several
    threads run the queue, they take turns: only one task runs at a time.

    Promise.result() runs the queue while waiting.
    '''
    shorthand = 'queue'

    @classmethod
    def fromstring(cls, expression):
        '''queue

        No parameters.
        '''
        return cls()

    def __init__(self):
        self._tasks = deque()
        self._run_lock = threading.Lock()
        # ident of the thread running a task, if any.
        self._runner = None

    def __len__(self):
        return len(self._tasks)

    def defer(self, task):
        self._tasks.append(task)

    def _in_task(self):
        return self._runner == threading.get_ident()

    def run_once(self):
        '''Runs the oldest task. Returns False if there was none.'''
        if self._in_task():
            raise SchedulerError('QueueScheduler cannot be run from within one of its tasks')
        with self._run_lock:
            try:
                task = self._tasks.popleft()
            except IndexError:
                return False
            self._runner = threading.get_ident()
            try:
                self._run_task(task)
            finally:
                self._runner = None
        return True

    def run(self):
        '''Runs tasks until the queue is empty.

        Tasks deferred meanwhile are run as well. Returns the number of
        tasks run.
        '''
        count = 0
        while self.run_once():
            count += 1
        return count

    def wait(self, event, timeout):
        '''Runs tasks until the event is set or the queue is empty,
        then waits for the remaining `timeout`.'''
        if self._in_task():
            raise PromiseDeadlockError('waiting from within a task of the QueueScheduler that would settle the promise')
        while not event.is_set() and self.run_once():
            pass
        return event.wait(timeout)


class ThreadScheduler(Scheduler):
    '''Runs tasks one after the other on a worker thread.

    The worker is started by the first .defer() and finishes as soon as the
    queue runs dry; the next .defer() starts a new one.
    '''
    shorthand = 'thread'

    @classmethod
    def fromstring(cls, expression):
        '''thread:name

        name is the name given to the worker thread. Default = ThreadScheduler.
        '''
        _, _, name = expression.partition(':')
        return cls(name=name or 'ThreadScheduler')

    def __init__(self, name='ThreadScheduler'):
        self.name = name
        self._queue = queue.Queue()
        self._lock = threading.Lock()
        self._running = threading.Event()
        self._thread = None

    def defer(self, task):
        with self._lock:
            self._queue.put(task)
            if self._running.is_set():
                return
            self._running.set()
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()

    def _run(self):
        L().debug('%s: worker started'%self.name)
        while True:
            with self._lock:
                try:
                    task = self._queue.get_nowait()
                except queue.Empty:
                    self._running.clear()
                    break
            self._run_task(task)
        L().debug('%s: worker finished'%self.name)

    def join(self):
        '''Blocks until the queue has run dry.'''
        while True:
            with self._lock:
                thread = self._thread if self._running.is_set() else None
            if thread is None or thread is threading.current_thread():
                return
            thread.join()

    def wait(self, event, timeout):
        if threading.current_thread() is self._thread:
            raise PromiseDeadlockError('waiting on the worker thread that would settle the promise')
        return event.wait(timeout)


class AsyncioScheduler(Scheduler):
    '''Runs tasks as callbacks on an asyncio event loop.

    Tasks are handed over with loop.call_soon_threadsafe(), so .defer() may be
    called from any thread.
    '''
    shorthand = 'asyncio'

    @classmethod
    def fromstring(cls, expression):
        '''asyncio

        Uses the running event loop, i.e. must be called from a coroutine
        or callback running on the loop.
        '''
        return cls()

    def __init__(self, loop=None):
        if loop is None:
            loop = asyncio.get_running_loop()
        self.loop = loop

    def defer(self, task):
        self.loop.call_soon_threadsafe(self._run_task, task)

    def wait(self, event, timeout):
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self.loop:
            raise PromiseDeadlockError('blocking the event loop that would settle the promise')
        return event.wait(timeout)


_default_scheduler = None
_default_lock = threading.Lock()

def get_default_scheduler():
    '''returns the scheduler used by promises created without one.

    Unless configured otherwise, this is a process-wide QueueScheduler.
    '''
    global _default_scheduler
    with _default_lock:
        if _default_scheduler is None:
            _default_scheduler = QueueScheduler()
        return _default_scheduler

def set_default_scheduler(scheduler):
    '''sets the scheduler used by promises created without one.

    scheduler is a Scheduler instance or an expression for
    Scheduler.fromstring(), e.g. "thread:promises". None restores the
    built-in default. Returns the previous default.

    Promises keep the scheduler they were created with.
    '''
    global _default_scheduler
    if isinstance(scheduler, str):
        scheduler = Scheduler.fromstring(scheduler)
    with _default_lock:
        previous, _default_scheduler = _default_scheduler, scheduler
    L().info('default scheduler set to %r'%(scheduler,))
    return previous
