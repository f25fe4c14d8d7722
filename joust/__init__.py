"""Joust: paired, turn-based debates with AI moderation."""
