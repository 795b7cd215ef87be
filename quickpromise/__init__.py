'''Promises with thenable adoption and pluggable scheduling.

* Promise: a value that is settled later, exactly once, as fulfilled or rejected.
* Scheduler: runs the promise handlers in a later turn, in FIFO order.
  Comes as QueueScheduler (run by hand), ThreadScheduler and AsyncioScheduler.
'''

from .errors import (PromiseError, InvalidExecutorError, CyclicChainError,
        PromiseTimeoutError, PromiseDeadlockError, PromiseRejectedError, SchedulerError)
from .promise import Promise, PromiseState, Deferred, Outcome
from .schedulers import (Scheduler, QueueScheduler, ThreadScheduler, AsyncioScheduler,
        get_default_scheduler, set_default_scheduler)

__all__ = [
        'Promise',
        'PromiseState',
        'Deferred',
        'Outcome',
        'Scheduler',
        'QueueScheduler',
        'ThreadScheduler',
        'AsyncioScheduler',
        'scheduler',
        'get_default_scheduler',
        'set_default_scheduler',
        'PromiseError',
        'InvalidExecutorError',
        'CyclicChainError',
        'PromiseTimeoutError',
        'PromiseDeadlockError',
        'PromiseRejectedError',
        'SchedulerError',
        ]


scheduler = Scheduler.fromstring
