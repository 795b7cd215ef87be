'''Adoption of thenables.

Resolving a promise with a *thenable*, i.e. any object with a callable
``then`` attribute (other promises included), does not fulfill the promise
with that object. The promise adopts the thenable's eventual outcome instead.
Classes are never thenables, even if their instances are.

Foreign ``then`` implementations are not trusted: they are only ever called
from a deferred task, they may call back any number of times (only the first
call counts), and whatever they raise becomes the rejection reason.
'''

__all__ = ['adopt']

import inspect
import logging
import threading

from .errors import CyclicChainError

L = lambda: logging.getLogger(__name__)

# never thenables, no need to look for a then attribute.
_PLAIN_TYPES = (type(None), bool, int, float, complex, str, bytes)


def _lookup_then(x):
    '''Returns x.then, or None if x has no such attribute.

    A then getter that raises, even with AttributeError, raises here.
    '''
    try:
        inspect.getattr_static(x, 'then')
    except AttributeError:
        # might still be provided by __getattr__
        return getattr(x, 'then', None)
    return x.then


class _Once(object):
    '''Lets exactly one of several competing callbacks through.'''
    def __init__(self):
        self._lock = threading.Lock()
        self._claimed = False

    def claim(self):
        '''Returns True for the first caller, False for everyone after.'''
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            return True


def adopt(promise, x, resolve, reject, scheduler):
    '''Settles `promise` according to the value `x`.

    Plain values are passed to `resolve` right away. For thenables, a task
    calling ``x.then`` is deferred on `scheduler`; whatever value the thenable
    produces is adopted in turn, a reason it produces goes to `reject`.
    '''
    if x is promise:
        reject(CyclicChainError('%r cannot be resolved with itself'%(promise,)))
        return
    # a class's then is an unbound method of its instances.
    if type(x) in _PLAIN_TYPES or isinstance(x, type):
        resolve(x)
        return
    try:
        then = _lookup_then(x)
    except Exception as e:
        L().debug('looking up %r.then raised %r'%(x, e))
        reject(e)
        return
    if not callable(then):
        resolve(x)
        return

    once = _Once()

    def on_value(value):
        if once.claim():
            adopt(promise, value, resolve, reject, scheduler)

    def on_reason(reason):
        if once.claim():
            reject(reason)

    def call_then():
        try:
            then(on_value, on_reason)
        except Exception as e:
            if once.claim():
                L().debug('%r.then raised %r'%(x, e))
                reject(e)

    L().debug('%r adopts %r'%(promise, x))
    scheduler.defer(call_then)
