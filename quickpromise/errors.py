'''Exceptions raised or produced by quickpromise.

Failures raised by user code (executors, handlers, foreign ``then`` methods)
are not wrapped: they become the rejection reason as they are.
'''

__all__ = [
    'PromiseError',
    'InvalidExecutorError',
    'CyclicChainError',
    'PromiseTimeoutError',
    'PromiseDeadlockError',
    'PromiseRejectedError',
    'SchedulerError',
]


class PromiseError(Exception):
    '''promise-related error'''

class InvalidExecutorError(PromiseError, TypeError):
    '''a Promise was constructed without a callable executor.'''

class CyclicChainError(PromiseError, TypeError):
    '''a promise was resolved with itself.'''

class PromiseTimeoutError(PromiseError, TimeoutError):
    '''waiting for the promise took too long.'''

class PromiseDeadlockError(PromiseError):
    '''waiting for the promise would block the scheduler that settles it.'''

class PromiseRejectedError(PromiseError):
    '''raised by Promise.result() if the rejection reason is not an exception.

    The original reason is available as ``.reason``.
    '''
    def __init__(self, reason):
        PromiseError.__init__(self, reason)
        self.reason = reason

class SchedulerError(PromiseError):
    '''the scheduler was used in a way it does not support.'''
