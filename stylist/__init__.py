"""AI stylist backend: outfit generation and marketplace product matching."""
