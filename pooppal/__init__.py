"""PoopPal backend: log sync, friends and statistics over Supabase."""

__version__ = "0.1.0"
