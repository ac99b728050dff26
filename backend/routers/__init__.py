"""HTTP routers, all mounted under /api by main.py."""
