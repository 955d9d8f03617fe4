"""
Critocracy game engine.
Board graph, movement resolution, card effects and the turn/phase state machine.
No web framework, database, or UI.
"""

RESOURCE_KINDS = ("money", "knowledge", "influence")

# Space kinds, as written in board.json
REGULAR = "Regular"
DRAW = "Draw"
CHOICEPOINT = "Choicepoint"
START = "Start"
FINISH = "Finish"
SPACE_KINDS = (REGULAR, DRAW, CHOICEPOINT, START, FINISH)

END_OF_TURN_DECK = "end_of_turn"
