"""Sticker rendering collaborators (ffmpeg, headless browser)."""
