"""Kid Points: family rewards tracking API."""
