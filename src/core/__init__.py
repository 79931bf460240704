"""core — file-backed state, change watching and background sync for portrelay."""
