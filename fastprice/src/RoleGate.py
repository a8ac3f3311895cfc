"""RoleGate: Role predicates backed by the feed's store.

Roles are plain equality and set-membership checks:

- governor: the single ``gov`` address
- token manager: the single ``token_manager`` address
- updater / signer: membership flags keyed by account
"""

from __future__ import annotations

import logging

from .errors import ForbiddenError
from .FeedState import GOV, IS_SIGNER, IS_UPDATER, TOKEN_MANAGER
from .Store import KeyValueStore

logger = logging.getLogger(__name__)


class RoleGate:
    """Answers "does this sender hold role X?" against a store.

    :ivar store: Store holding the role anchors.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def is_gov(self, sender: str) -> bool:
        gov = GOV.load(self.store)
        return bool(gov) and sender == gov

    def is_token_manager(self, sender: str) -> bool:
        token_manager = TOKEN_MANAGER.load(self.store)
        return bool(token_manager) and sender == token_manager

    def is_updater(self, sender: str) -> bool:
        return IS_UPDATER.load(self.store, sender)

    def is_signer(self, sender: str) -> bool:
        return IS_SIGNER.load(self.store, sender)

    def require(self, role: str, sender: str) -> None:
        """Raise unless ``sender`` holds ``role``.

        :param role: One of "gov", "token_manager", "updater", "signer".
        :param sender: Normalized sender address.
        :raises ForbiddenError: If the sender lacks the role.
        :raises ValueError: If the role name is unknown.
        """
        checks = {
            "gov": self.is_gov,
            "token_manager": self.is_token_manager,
            "updater": self.is_updater,
            "signer": self.is_signer,
        }
        if role not in checks:
            raise ValueError(f"Unknown role '{role}'")
        if not checks[role](sender):
            logger.debug(f"Rejected {sender}: missing role {role}")
            raise ForbiddenError(sender, role)
