"""Core engine: matchmaking, turn-taking, moderation and storage."""
