'''Bookkeeping of the reactions registered on a pending promise.

Reactions are kept in a singly linked list. New reactions are prepended, so
the list runs newest-first; drain() reverses it in place before notifying,
so that reactions fire in the order they were registered.
'''

__all__ = ['PromiseState', 'Reaction', 'drain', 'handler_task']

from enum import Enum
import logging

L = lambda: logging.getLogger(__name__)


class PromiseState(Enum):
    pending = 0
    fulfilled = 1
    rejected = 2


class Reaction(object):
    '''One registered observer: a callback per outcome, plus the link
    to the reaction registered before it.'''
    __slots__ = ('on_fulfilled', 'on_rejected', 'next')

    def __init__(self, on_fulfilled, on_rejected, next=None):
        self.on_fulfilled = on_fulfilled
        self.on_rejected = on_rejected
        self.next = next

    def link(self, head):
        '''prepends self to the list starting at head. Returns the new head.'''
        self.next = head
        return self

    def fire(self, state, result):
        if state is PromiseState.fulfilled:
            self.on_fulfilled(result)
        elif state is PromiseState.rejected:
            self.on_rejected(result)


def _reverse(head):
    reversed_head = None
    while head is not None:
        head.next, reversed_head, head = reversed_head, head, head.next
    return reversed_head


def drain(head, state, result):
    '''Notifies every reaction of the newest-first list at `head`,
    oldest first, exactly once. Does nothing while state is pending.
    '''
    if state is PromiseState.pending:
        return
    node = _reverse(head)
    while node is not None:
        reaction, node = node, node.next
        reaction.next = None
        reaction.fire(state, result)


def handler_task(handler, fallback, arg, resolve, reject):
    '''Returns the deferred task that runs one user handler.

    The handler's return value goes to `resolve`, an exception it raises goes
    to `reject`. Without a handler, `arg` is passed on to `fallback` unchanged.
    '''
    def task():
        if handler is None:
            fallback(arg)
            return
        try:
            value = handler(arg)
        except Exception as e:
            L().debug('handler %r raised %r'%(handler, e))
            reject(e)
        else:
            resolve(value)
    return task
