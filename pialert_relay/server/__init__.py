"""FastAPI control surface for the PiAlert relay controller."""
