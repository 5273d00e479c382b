"""ASGI request pipeline and serving."""
