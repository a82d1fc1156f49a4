"""
Daily Mafia Game Package

Game rules and lifecycle: roles, night resolution, win conditions, the
phase scheduler, action and vote intake, rewards and the deadline sweeper.
"""
