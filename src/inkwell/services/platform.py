"""Composition of the core services over one session and clock."""

from __future__ import annotations

import logging
from typing import TypeVar

from sqlalchemy.orm import Session

from inkwell.db.time import Clock, utcnow
from inkwell.services.categories import CategoryTree
from inkwell.services.comments import CommentThread
from inkwell.services.counters import CounterLedger
from inkwell.services.events import Outcome
from inkwell.services.notifications import NotificationDispatcher
from inkwell.services.posts import PostLifecycle
from inkwell.services.social import SocialGraph
from inkwell.services.tags import TagCatalog

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Platform:
    """Builds every service for a session; the request layer holds one per unit of work."""

    def __init__(self, session: Session, clock: Clock = utcnow) -> None:
        self.session = session
        self.clock = clock
        self.counters = CounterLedger(session)
        self.categories = CategoryTree(session, clock)
        self.tags = TagCatalog(session, clock)
        self.posts = PostLifecycle(session, clock, self.counters)
        self.comments = CommentThread(session, clock, self.counters)
        self.social = SocialGraph(session, clock)
        self.notifications = NotificationDispatcher(session, clock)

    def run(self, outcome: Outcome[T]) -> T:
        """Dispatch the outcome's events and return its value.

        Call only after the operation that produced ``outcome`` returned, which
        means its transaction has committed.
        """
        if outcome.events:
            created = self.notifications.dispatch(outcome.events)
            logger.debug("Dispatched %d of %d event(s)", len(created), len(outcome.events))
        return outcome.value
