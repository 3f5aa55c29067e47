"""HRIS backend: CRUD endpoints plus live change notifications over WebSocket."""
