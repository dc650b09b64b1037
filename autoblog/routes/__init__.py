"""HTTP routes for content generation, publishing and queue administration."""
