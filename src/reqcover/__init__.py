"""reqcover package."""
