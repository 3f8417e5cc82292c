"""HTTP routers for operator actions."""
