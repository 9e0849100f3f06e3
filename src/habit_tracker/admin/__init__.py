"""Admin analytics: user management, stats, trends, export and sessions."""
