"""
DairyDesk web layer.

create_app() in .main builds the FastAPI app; routers live in .auth_routes.
"""
