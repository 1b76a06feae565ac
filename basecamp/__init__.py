"""Gamified household chore board: households, quests, XP and a leaderboard."""
