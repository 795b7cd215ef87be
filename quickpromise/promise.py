'''Defines the :class:`Promise` class.

A Promise (also known as a Deferred or a Future) is like an order slip
for something that is still being produced.

The method names follow the well-known javascript Promise: ``then``,
``catch``, ``Promise.resolve``, ``Promise.reject``, ``Promise.all`` and
friends. Handlers never run synchronously; they are handed to the promise's
:class:`~quickpromise.schedulers.Scheduler`.
'''

__all__ = [
    'Promise',
    'PromiseState',
    'Deferred',
    'Outcome',
    'PromiseError',
    'InvalidExecutorError',
    'CyclicChainError',
    'PromiseTimeoutError',
    'PromiseDeadlockError',
    'PromiseRejectedError',
]

from collections import namedtuple
import logging
import threading

from .adoption import adopt
from .errors import (PromiseError, InvalidExecutorError, CyclicChainError,
        PromiseTimeoutError, PromiseDeadlockError, PromiseRejectedError)
from .reactions import PromiseState, Reaction, drain, handler_task
from .schedulers import get_default_scheduler

L = lambda: logging.getLogger(__name__)

Deferred = namedtuple('Deferred', 'promise resolve reject')
Outcome = namedtuple('Outcome', 'state value')

_noop = lambda resolve, reject: None


class Promise(object):
    '''Encapsulates a result that will arrive later.

    The `executor` is called right away with two functions,
    ``resolve(value)`` and ``reject(reason)``. Whichever is called first
    settles the promise; later calls have no effect. If the executor raises,
    the promise is rejected with the exception.

    Resolving with another promise (or any object with a callable ``then``)
    makes this promise follow that one. Rejection reasons can be anything
    and are never unwrapped.

    Register handlers with .then() and .catch(). They run on the `scheduler`
    (by default the one configured with set_default_scheduler()), never
    synchronously, and always in the order they were registered.

    The built-in default scheduler is a QueueScheduler, which runs nothing
    by itself: handlers wait until someone calls its .run(), or .result() on
    one of its promises. Use set_default_scheduler('thread') (or pass a
    scheduler) to have them run automatically.

    Threading:
        * settling and registering handlers is safe from any thread.
        * handlers run wherever the scheduler runs its tasks.
    '''

    def __init__(self, executor, scheduler=None):
        if not callable(executor):
            raise InvalidExecutorError('%r is not a callable executor'%(executor,))
        if scheduler is None:
            scheduler = get_default_scheduler()
        self._scheduler = scheduler
        self._lock = threading.Lock()
        self._settled = threading.Event()
        self._state = PromiseState.pending
        # newest-first list of Reaction, while pending.
        self._reactions = None
        # value or reason, once settled.
        self._result = None
        try:
            executor(self._resolve, self._reject)
        except Exception as e:
            L().debug('executor %r raised %r'%(executor, e))
            self._reject(e)

    def __repr__(self):
        if self._state is PromiseState.pending:
            return '<%s pending>'%self.__class__.__name__
        return '<%s %s: %r>'%(self.__class__.__name__, self._state.name, self._result)

    @property
    def state(self):
        return self._state

    @property
    def scheduler(self):
        return self._scheduler

    @property
    def pending(self):
        return self._state is PromiseState.pending

    def done(self):
        '''True once the promise is fulfilled or rejected.'''
        return self._state is not PromiseState.pending

    def _resolve(self, value):
        if self._state is not PromiseState.pending:
            return
        adopt(self, value, self._fulfill, self._reject, self._scheduler)

    def _reject(self, reason):
        self._settle(PromiseState.rejected, reason)

    def _fulfill(self, value):
        self._settle(PromiseState.fulfilled, value)

    def _settle(self, state, result):
        with self._lock:
            if self._state is not PromiseState.pending:
                return
            reactions, self._reactions = self._reactions, None
            self._state = state
            self._result = result
        self._settled.set()
        L().debug('%r settled'%(self,))
        drain(reactions, state, result)

    def then(self, on_fulfilled=None, on_rejected=None):
        '''Registers handlers for the outcome; returns a new Promise.

        The new promise is resolved with whatever the called handler returns,
        or rejected with the exception it raises. A missing (or non-callable)
        handler passes the value resp. reason on unchanged.
        '''
        on_fulfilled = on_fulfilled if callable(on_fulfilled) else None
        on_rejected = on_rejected if callable(on_rejected) else None
        child = self.deferred(self._scheduler)

        def reaction_callback(handler, fallback):
            def callback(arg):
                self._scheduler.defer(handler_task(handler, fallback, arg, child.resolve, child.reject))
            return callback

        reaction = Reaction(
            reaction_callback(on_fulfilled, child.resolve),
            reaction_callback(on_rejected, child.reject),
        )
        with self._lock:
            if self._state is PromiseState.pending:
                self._reactions = reaction.link(self._reactions)
                return child.promise
            state, result = self._state, self._result
        reaction.fire(state, result)
        return child.promise

    def catch(self, on_rejected):
        '''Registers a handler for rejection only. Same as .then(None, on_rejected).'''
        return self.then(None, on_rejected)

    def result(self, timeout=1.0):
        '''Return the result, waiting for it if necessary.

        If the promise was rejected, this will raise the reason. Reasons that
        are no exceptions are wrapped in PromiseRejectedError.

        If the promise is still pending after the `timeout` (in seconds)
        elapsed, PromiseTimeoutError is raised. If the wait would block the
        scheduler that settles the promise, PromiseDeadlockError is raised.
        '''
        if not self._settled.is_set() and not self._scheduler.wait(self._settled, timeout):
            raise PromiseTimeoutError()

        if self._state is PromiseState.fulfilled:
            return self._result
        elif self._state is PromiseState.rejected:
            if isinstance(self._result, BaseException):
                raise self._result
            raise PromiseRejectedError(self._result)
        else:
            assert False, 'unexpected Promise state'

    __call__ = result

    @classmethod
    def deferred(cls, scheduler=None):
        '''Returns a pending promise together with its resolve and reject
        functions, as namedtuple Deferred(promise, resolve, reject).'''
        promise = cls(_noop, scheduler=scheduler)
        return Deferred(promise, promise._resolve, promise._reject)

    @classmethod
    def resolve(cls, value, scheduler=None):
        '''Returns a promise resolved with value.

        If value is a Promise already, it is returned as is.
        '''
        if isinstance(value, cls):
            return value
        d = cls.deferred(scheduler)
        d.resolve(value)
        return d.promise

    @classmethod
    def reject(cls, reason, scheduler=None):
        '''Returns a promise rejected with reason.'''
        d = cls.deferred(scheduler)
        d.reject(reason)
        return d.promise

    @classmethod
    def all(cls, promises, scheduler=None):
        '''Returns a promise for the list of results of all given promises.

        It is rejected as soon as any of them is rejected. Items that are
        no promises are treated like Promise.resolve(item).
        '''
        promises = [cls.resolve(p, scheduler) for p in promises]
        d = cls.deferred(scheduler)
        if not promises:
            d.resolve([])
            return d.promise
        results = [None] * len(promises)
        remaining = [len(promises)]
        lock = threading.Lock()

        def collect(index):
            def on_value(value):
                with lock:
                    results[index] = value
                    remaining[0] -= 1
                    complete = remaining[0] == 0
                if complete:
                    d.resolve(results)
            return on_value

        for index, promise in enumerate(promises):
            promise.then(collect(index), d.reject)
        return d.promise

    @classmethod
    def race(cls, promises, scheduler=None):
        '''Returns a promise settled like the first of the given promises
        to settle. Stays pending forever if there are none.'''
        d = cls.deferred(scheduler)
        for promise in promises:
            cls.resolve(promise, scheduler).then(d.resolve, d.reject)
        return d.promise

    @classmethod
    def all_settled(cls, promises, scheduler=None):
        '''Returns a promise for the list of outcomes of all given promises.

        Each outcome is an Outcome(state, value) namedtuple, value being the
        reason for rejected promises. Never rejected.
        '''
        outcomes = [
            cls.resolve(p, scheduler).then(
                lambda value: Outcome(PromiseState.fulfilled, value),
                lambda reason: Outcome(PromiseState.rejected, reason),
            )
            for p in promises
        ]
        return cls.all(outcomes, scheduler)
