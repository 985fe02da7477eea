"""Trivia domain services.

Lobby and game state machines, scoring, question selection and the
leaderboard store live here so that HTTP routes and socket handlers stay
thin and only translate transport concerns.
"""
