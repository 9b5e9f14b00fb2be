"""
Voting & Favorites Ledger
=========================

Toggles a user's membership in a set and keeps the matching counter in sync:

- Snippet.upvoted_by   <-> Snippet.upvotes
- Snippet.favorited_by <-> User.favorite_snippets (same rows, both sides)
- CodeFork.voted_by    <-> CodeFork.votes

CONCURRENCY STRATEGY:
---------------------
Problem: the same user double-clicks "upvote"
Naive: read set -> check membership -> write set + counter → LOST UPDATE

Solution: one transaction per toggle
1. SELECT ... FOR UPDATE on the target row (snippet or fork)
2. Flip membership in the through table
3. Recompute the counter as COUNT(*) of the set and save it

Step 1 serializes toggles on the same object, so two concurrent toggles by
the same user always land as add-then-remove. Toggles by different users
touch disjoint rows of the set and both survive.

Step 3 derives the counter from the set instead of +1/-1, so the counter
cannot drift from the set even if a row was written outside this module.
"""

import logging

from django.contrib.auth.models import User
from django.db import transaction

from .exceptions import NotFoundError
from .models import CodeFork, Snippet

logger = logging.getLogger(__name__)


class ToggleResult:
    """Result of a toggle: membership after the call and the set size."""
    def __init__(self, active: bool, count: int):
        self.active = active
        self.count = count

    def __repr__(self):
        return f"ToggleResult(active={self.active}, count={self.count})"


def _toggle(instance, relation: str, user: User, counter_field: str = None) -> ToggleResult:
    """
    Flip `user` in `instance.<relation>`. Caller holds the row lock.

    When `counter_field` is given it is rewritten from the set size.
    """
    members = getattr(instance, relation)

    if members.filter(id=user.id).exists():
        members.remove(user)
        active = False
    else:
        members.add(user)
        active = True

    count = members.count()
    if counter_field is not None:
        setattr(instance, counter_field, count)
        instance.save(update_fields=[counter_field])

    return ToggleResult(active=active, count=count)


def _lock_snippet(snippet_id: int) -> Snippet:
    try:
        return Snippet.objects.select_for_update().get(id=snippet_id)
    except Snippet.DoesNotExist:
        raise NotFoundError('Snippet not found')


def toggle_upvote(user: User, snippet_id: int) -> ToggleResult:
    """
    Add or remove the user's upvote. Two calls leave everything as it was.

    RETURNS:
    - ToggleResult; `count` is the new Snippet.upvotes
    """
    with transaction.atomic():
        snippet = _lock_snippet(snippet_id)
        result = _toggle(snippet, 'upvoted_by', user, counter_field='upvotes')

    logger.debug("User %s upvote on snippet %s -> %s", user.id, snippet_id, result)
    return result


def toggle_favorite(user: User, snippet_id: int) -> ToggleResult:
    """
    Add or remove the snippet from the user's favorites.

    Snippet.favorited_by and User.favorite_snippets are one relation, so a
    single through-table write updates both sides at once.
    """
    with transaction.atomic():
        snippet = _lock_snippet(snippet_id)
        result = _toggle(snippet, 'favorited_by', user)

    logger.debug("User %s favorite on snippet %s -> %s", user.id, snippet_id, result)
    return result


def toggle_fork_vote(user: User, fork_id: int) -> ToggleResult:
    """Same pattern as toggle_upvote, applied to CodeFork.voted_by / votes."""
    with transaction.atomic():
        try:
            fork = CodeFork.objects.select_for_update().get(id=fork_id)
        except CodeFork.DoesNotExist:
            raise NotFoundError('Fork not found')
        result = _toggle(fork, 'voted_by', user, counter_field='votes')

    logger.debug("User %s vote on fork %s -> %s", user.id, fork_id, result)
    return result
