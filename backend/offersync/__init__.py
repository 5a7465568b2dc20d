"""Offer catalog sync: cached, revalidated copy of a remote JSON catalog."""
