"""What a client should tell the player, and which group of actions it should offer."""

from enum import StrEnum

from chesslink.game.state import GameSession

IDLE_MESSAGE = "How about a nice game of chess?"


class Menu(StrEnum):
    NEW_GAME = "new game"
    PROMOTION = "promotion"
    CONFIRM_RESIGN = "confirm resign"
    ANSWER_DRAW = "answer draw"
    IN_GAME = "in game"


def status_message(state: GameSession) -> str:
    status = state.status
    negotiation = state.negotiation
    to_move = "White" if status.white_to_move else "Black"
    other = "Black" if status.white_to_move else "White"

    if status.over:
        if not state.is_connected:
            return IDLE_MESSAGE
        if status.checkmate:
            return f"{other} wins!"
        if status.stalemate:
            return f"{other} wins by stalemate!"
        if status.draw:
            # the last matching reason wins, agreement beats everything
            reason = ""
            if status.insufficient_material:
                reason = " (insufficient material)"
            if status.repetition:
                reason = " (repetition)"
            if negotiation.draw_accepted:
                reason = " (mutual agreement)"
            return f"Game Over -- Draw{reason}!"
        if negotiation.resigned_by is not None:
            return f"Game Over -- {negotiation.resigned_by} resigned!"
        return "Game Over!"

    if status.check:
        return f"{to_move} is in check!"
    if negotiation.confirming_resign_locally:
        return f"{to_move} is resigning?!"
    if negotiation.draw_offered_by is not None:
        return f"{negotiation.draw_offered_by.title()} offers a draw!"
    return f"{to_move} to move..."


def available_menu(state: GameSession) -> Menu:
    if not state.is_connected or state.status.over:
        return Menu.NEW_GAME
    if state.pending_promotion is not None:
        return Menu.PROMOTION
    if state.negotiation.confirming_resign_locally:
        return Menu.CONFIRM_RESIGN
    if state.negotiation.draw_offered_by is not None:
        return Menu.ANSWER_DRAW
    return Menu.IN_GAME
