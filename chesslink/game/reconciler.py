"""
Sync Reconciler: fold a remote snapshot into the local session.

Remote wins for ownership, negotiation, highlight policy and position. Squares and status are
never read from the document, they are recomputed from the freshly loaded position. The
negotiation fields are taken over first because the status overrides depend on them.
"""

import logging
from dataclasses import replace

from chesslink.chess.rules import RuleEngine
from chesslink.core.models import SessionDocument
from chesslink.game.state import GameSession, NegotiationState, derive_squares, derive_status

logger = logging.getLogger(__name__)


def negotiation_from_document(document: SessionDocument, confirming_resign: bool) -> NegotiationState:
    remote = document.negotiation
    return NegotiationState(
        draw_offered_by=remote.draw_offered_by,
        draw_accepted=remote.draw_accepted,
        resigned_by=remote.resigned_by,
        confirming_resign_locally=confirming_resign,
    )


def apply_snapshot(session: GameSession, document: SessionDocument, rules: RuleEngine) -> GameSession:
    """Return the session as it looks after `document` arrived. Loads the position into `rules`."""
    negotiation = negotiation_from_document(
        document, confirming_resign=session.negotiation.confirming_resign_locally
    )

    previous_position = rules.position()
    rules.load(document.position)

    # A promotion choice only makes sense for the position it was started in
    pending_promotion = session.pending_promotion
    if pending_promotion is not None and rules.position() != previous_position:
        logger.debug("Dropping pending promotion, the position changed remotely")
        pending_promotion = None

    return replace(
        session,
        ownership=document.ownership,
        negotiation=negotiation,
        highlight_policy=document.highlight_policy,
        pending_promotion=pending_promotion,
        squares=derive_squares(rules),
        status=derive_status(rules, negotiation),
    )
