"""
The Session Controller is the entrypoint into the game for a client (UI, tests, bots).
It turns clicks, negotiation actions and remote notifications into new GameSession snapshots,
and pushes whatever must be shared to the remote store.

States (derived from the snapshot, not stored separately):

    Disconnected --new_game/connect--> Connected
    Connected: Idle <-> PieceSelected <-> AwaitingPromotion
               Idle/PieceSelected -> ConfirmingResign | DrawOffered -> Idle
               any -> GameOver (left only through new_game)

Every public action runs as one transition. Remote snapshots that arrive while a transition
is running are queued and folded in right after it, never in the middle of it.
"""

import logging
from contextlib import contextmanager
from dataclasses import replace
from enum import StrEnum
from typing import Any, Callable, Iterator, Optional

from chesslink.api.deep_link import session_path
from chesslink.chess.coordinates import idx_to_name, is_valid_index, name_to_idx
from chesslink.chess.rules import RuleEngine
from chesslink.core.exceptions import InvalidPositionError, RemoteStoreError, SessionNotFoundError
from chesslink.core.models import Ownership, SessionDocument, merge_partial
from chesslink.core.shared_types import PROMOTION_CHOICES, Color, PieceType, SessionId, UserId
from chesslink.db.repository import DocumentStore, Unsubscribe
from chesslink.game.identity import new_session_id
from chesslink.game.reconciler import apply_snapshot
from chesslink.game.state import (
    GameSession,
    Move,
    Status,
    clear_errors,
    derive_squares,
    derive_status,
    set_highlights,
    set_selected,
    update_square,
)

logger = logging.getLogger(__name__)

Observer = Callable[[GameSession], None]
AddressCallback = Callable[[str], None]


class ClickOutcome(StrEnum):
    SELECTED = "selected"
    RESELECTED = "reselected"
    MOVED = "moved"
    PROMOTION_PENDING = "promotion pending"
    REJECTED = "rejected"
    INVALID_SQUARE = "invalid square"


def claim(ownership: Ownership, color: Color, user_id: UserId) -> Ownership:
    """Fill the slot of `color` with user_id if nobody holds it. A claimed slot is never overwritten."""
    if ownership.owner(color) is not None:
        return ownership
    return ownership.model_copy(update={color.value: user_id})


class SessionController:
    """Orchestration of one client's session: local state, rule engine and remote store."""

    def __init__(
        self,
        store: DocumentStore,
        rules: RuleEngine,
        user_id: UserId,
        on_address: Optional[AddressCallback] = None,
    ) -> None:
        self.store = store
        self.rules = rules
        self.on_address = on_address
        self._state = GameSession(local_user_id=user_id)
        self._observers: list[Observer] = []
        self._last_published = self._state
        self._unsubscribe: Optional[Unsubscribe] = None
        self._depth = 0
        self._queued_snapshots: list[SessionDocument] = []
        # Fields whose push to the remote store failed, waiting for retry_sync()
        self._unsynced: dict[str, Any] = {}

    # --- Observer API ---
    @property
    def state(self) -> GameSession:
        """Read-only snapshot. Replaced (never mutated) by every transition."""
        return self._state

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # --- Board interaction ---
    def click(self, idx: int) -> ClickOutcome:
        """The user clicked square idx."""
        # UI input: an impossible index is reported, not trapped
        if not is_valid_index(idx):
            logger.debug("Click on invalid square index %r", idx)
            return ClickOutcome.INVALID_SQUARE

        with self._transition("click"):
            return self._click(idx)

    def clear_error(self, idx: int) -> None:
        """The UI is done showing the error cue on idx."""
        if not is_valid_index(idx):
            return
        with self._transition("clear error"):
            if self._state.square(idx).error:
                self._set(squares=update_square(self._state.squares, idx, error=False))

    def choose_promotion(self, kind: PieceType | str) -> bool:
        """Complete the move waiting for a promotion choice. False if there is none (or kind is not allowed)."""
        with self._transition("choose promotion"):
            pending = self._state.pending_promotion
            if pending is None or self._state.status.over or kind not in PROMOTION_CHOICES:
                logger.debug("Ignoring promotion choice %r, pending move: %s", kind, pending)
                return False
            self._execute_move(replace(pending, promotion=PieceType(kind)))
            return True

    # --- Resign sub-protocol ---
    def begin_resign(self) -> bool:
        with self._transition("begin resign"):
            if self._negotiating_side() is None:
                return False
            self._set_negotiation(confirming_resign_locally=True)
            return True

    def confirm_resign(self, accepted: bool) -> bool:
        with self._transition("confirm resign"):
            if not self._state.negotiation.confirming_resign_locally:
                return False

            self._set_negotiation(confirming_resign_locally=False)
            # a game that ended meanwhile cannot be resigned any more
            side = self._negotiating_side()
            if side is None:
                return False

            if accepted:
                self._set_negotiation(resigned_by=side)
                self._push({"negotiation": {"resigned_by": side.value}})
            self._recompute_status()
            return True

    # --- Draw sub-protocol ---
    def offer_draw(self) -> bool:
        with self._transition("offer draw"):
            side = self._negotiating_side()
            if side is None:
                return False
            self._set_negotiation(draw_offered_by=side)
            self._push({"negotiation": {"draw_offered_by": side.value}})
            return True

    def accept_draw(self, accepted: bool) -> bool:
        """Answer the outstanding offer. Declining your own offer withdraws it."""
        with self._transition("accept draw"):
            side = self._negotiating_side()
            offered_by = self._state.negotiation.draw_offered_by
            if side is None or offered_by is None or (offered_by == side and accepted):
                return False

            if accepted:
                self._set_negotiation(draw_accepted=True)
            else:
                self._set_negotiation(draw_offered_by=None)
            negotiation = self._state.negotiation
            self._push(
                {
                    "negotiation": {
                        "draw_offered_by": negotiation.draw_offered_by,
                        "draw_accepted": negotiation.draw_accepted,
                    }
                }
            )
            self._recompute_status()
            return True

    # --- Move hints ---
    def propose_highlights(self) -> bool:
        """Ask the opponent to switch move hints on (or off, if they are on)."""
        with self._transition("propose highlights"):
            side = self._negotiating_side()
            if side is None:
                return False
            self._set(highlight_policy=self._state.highlight_policy.model_copy(update={"offered_by": side}))
            self._push({"highlight_policy": {"offered_by": side.value}})
            return True

    def answer_highlights(self, accepted: bool) -> bool:
        with self._transition("answer highlights"):
            side = self._negotiating_side()
            policy = self._state.highlight_policy
            if side is None or policy.offered_by is None or (policy.offered_by == side and accepted):
                return False

            enabled = not policy.accepted if accepted else policy.accepted
            self._set(highlight_policy=policy.model_copy(update={"offered_by": None, "accepted": enabled}))
            self._push({"highlight_policy": {"offered_by": None, "accepted": enabled}})
            self._refresh_highlights()
            return True

    # --- Session lifecycle ---
    def new_game(self) -> SessionId:
        """
        Start over. The current session id is reused, so whoever is connected stays connected;
        sides are unclaimed again and every negotiation is cleared.
        """
        with self._transition("new game"):
            session_id = self._state.session_id or new_session_id()
            document = SessionDocument.fresh(session_id, self.rules.starting_position())
            self.store.create(session_id, document)
            logger.info("New game in session %s", session_id)

            if self.on_address is not None:
                self.on_address(session_path(session_id))
            self._connect(session_id)
            return session_id

    def connect(self, session_id: SessionId) -> None:
        """Follow an existing session. Raises SessionNotFoundError (state untouched) if it does not exist."""
        with self._transition("connect"):
            self._connect(session_id)

    def disconnect(self) -> None:
        """Stop following the session and forget its position. The identity is kept."""
        with self._transition("disconnect"):
            self._detach()
            self.rules.clear()
            self._unsynced.clear()
            self._state = GameSession(local_user_id=self._state.local_user_id)

    def close(self) -> None:
        """Tear down: disconnect and drop all observers."""
        self.disconnect()
        self._observers.clear()

    def retry_sync(self) -> bool:
        """Push again whatever failed to reach the remote store. True once nothing is left unsynced."""
        with self._transition("retry sync"):
            if self._unsynced:
                self._push({})
            return not self._unsynced

    # --- Remote notifications ---
    def _on_remote_snapshot(self, document: SessionDocument) -> None:
        if document.session_id != self._state.session_id:
            logger.debug("Ignoring snapshot of session %s", document.session_id)
            return
        self._queued_snapshots.append(document)
        if self._depth == 0:
            with self._transition("remote snapshot"):
                pass

    # --- Transition machinery ---
    @contextmanager
    def _transition(self, name: str) -> Iterator[None]:
        logger.debug("Transition: %s", name)
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
            if self._depth == 0:
                self._apply_queued_snapshots()
                self._publish()

    def _apply_queued_snapshots(self) -> None:
        while self._queued_snapshots:
            document = self._queued_snapshots.pop(0)
            # the session may have changed while the snapshot was waiting
            if document.session_id != self._state.session_id:
                continue
            try:
                self._state = apply_snapshot(self._state, document, self.rules)
            except InvalidPositionError as exc:
                logger.warning("Skipping snapshot of session %s: %s", document.session_id, exc)

    def _publish(self) -> None:
        if self._state is self._last_published:
            return
        self._last_published = self._state
        for observer in list(self._observers):
            observer(self._state)

    def _set(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)

    def _set_negotiation(self, **changes: Any) -> None:
        self._set(negotiation=replace(self._state.negotiation, **changes))

    # --- PRIVATE HELPERS ---
    def _click(self, idx: int) -> ClickOutcome:
        state = self._state

        # prohibit interactions in some states
        if state.status.over:
            return self._reject(idx, "game is over")
        if state.pending_promotion is not None:
            return self._reject(idx, "waiting for a promotion choice")
        if state.negotiation.confirming_resign_locally:
            return self._reject(idx, "confirming resignation")

        # can we move right now?
        mover = state.status.mover
        if not state.may_move(mover):
            return self._reject(idx, f"{mover} belongs to someone else")

        piece = state.square(idx).occupant
        previous = state.selected_idx

        # nothing previously selected
        if previous is None:
            if piece is None:
                return self._reject(idx, "empty square")
            if piece.color != mover:
                return self._reject(idx, "opponent's piece")
            self._select(idx)
            return ClickOutcome.SELECTED

        # one of our own pieces was clicked: move the selection
        if piece is not None and piece.color == mover:
            self._select(idx)
            return ClickOutcome.RESELECTED

        # if we got here, we're trying to make a move
        move = self._legal_moves(previous).get(idx)
        if move is None:
            self._set(squares=set_highlights(set_selected(self._state.squares, None), []))
            return self._reject(idx, f"{idx_to_name(idx)} is not reachable")
        return self._execute_move(move)

    def _reject(self, idx: int, reason: str) -> ClickOutcome:
        logger.debug("Rejected click on %s: %s", idx_to_name(idx), reason)
        self._set(squares=update_square(self._state.squares, idx, error=True))
        return ClickOutcome.REJECTED

    def _select(self, idx: int) -> None:
        squares = clear_errors(set_selected(self._state.squares, idx))
        self._set(squares=squares)
        self._refresh_highlights()

    def _refresh_highlights(self) -> None:
        """Highlight where the selected piece can go, if hints are on. Otherwise no highlights."""
        selected = self._state.selected_idx
        targets: list[int] = []
        if selected is not None and self._state.highlight_policy.accepted:
            targets = list(self._legal_moves(selected))
        self._set(squares=set_highlights(self._state.squares, targets))

    def _legal_moves(self, from_idx: int) -> dict[int, Move]:
        """Legal moves from from_idx, keyed by destination index."""
        moves: dict[int, Move] = {}
        for legal in self.rules.legal_moves_from(idx_to_name(from_idx)):
            to_idx = name_to_idx(legal.to)
            moves[to_idx] = Move(from_idx, to_idx, needs_promotion=legal.needs_promotion)
        return moves

    def _execute_move(self, move: Move) -> ClickOutcome:
        """
        Play a move the rule engine listed as legal.
        ----

        1. Incomplete promotion? park it and wait for choose_promotion
        2. apply it to the rule engine
        3. the side that moved is claimed by us, unless someone already holds it
        4. push position + ownership
        5. recompute squares / status
        """
        if move.is_incomplete:
            self._set(pending_promotion=move)
            return ClickOutcome.PROMOTION_PENDING

        mover = self._state.status.mover
        self.rules.apply(idx_to_name(move.from_idx), idx_to_name(move.to_idx), move.promotion)
        ownership = claim(self._state.ownership, mover, self._state.local_user_id)
        self._set(pending_promotion=None, ownership=ownership)
        logger.debug(
            "%s played %s%s", mover, idx_to_name(move.from_idx), idx_to_name(move.to_idx)
        )

        self._push(
            {
                "position": self.rules.position(),
                "ownership": ownership.model_dump(mode="json"),
            }
        )
        self._set(squares=derive_squares(self.rules))
        self._recompute_status()
        return ClickOutcome.MOVED

    def _recompute_status(self) -> None:
        self._set(status=derive_status(self.rules, self._state.negotiation))

    def _negotiating_side(self) -> Optional[Color]:
        """The side we play, if negotiating is possible at all: connected, game still running."""
        state = self._state
        if not state.is_connected or state.status.over:
            return None
        return state.local_side

    def _push(self, fields: dict[str, Any]) -> None:
        """
        Partial update of the remote document.

        A failed write is not lost: the fields are kept (merged with earlier failures) and
        sync_error is set until retry_sync() gets them through.
        """
        session_id = self._state.session_id
        if session_id is None:
            return

        self._unsynced = merge_partial(self._unsynced, _jsonable(fields))
        try:
            stored = self.store.update(session_id, self._unsynced)
        except RemoteStoreError as exc:
            logger.warning("Sync of session %s failed, keeping changes for retry: %s", session_id, exc)
            self._set(sync_error=str(exc))
            return

        if stored is None:
            logger.warning("Session %s no longer exists in the remote store", session_id)
            self._set(sync_error=f"session {session_id} not found")
            return

        self._unsynced = {}
        if self._state.sync_error is not None:
            self._set(sync_error=None)

    def _connect(self, session_id: SessionId) -> None:
        # make sure the session exists before letting go of the current one
        if self.store.read(session_id) is None:
            logger.warning("Cannot connect, session %s does not exist", session_id)
            raise SessionNotFoundError(f"Session {session_id!r} not found.")

        self._detach()
        self.rules.clear()
        self._unsynced.clear()
        self._state = GameSession(
            local_user_id=self._state.local_user_id,
            session_id=session_id,
            status=Status.idle(),
        )
        self._unsubscribe = self.store.subscribe(session_id, self._on_remote_snapshot)
        logger.info("Connected to session %s", session_id)

    def _detach(self) -> None:
        """Unsubscribe before any new subscription, or callbacks pile up."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._queued_snapshots.clear()


def _jsonable(fields: dict[str, Any]) -> dict[str, Any]:
    """Enum values to plain strings, so pushed partials look like stored documents."""
    result: dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, dict):
            result[key] = _jsonable(value)
        elif isinstance(value, StrEnum):
            result[key] = value.value
        else:
            result[key] = value
    return result
