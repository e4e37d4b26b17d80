# backend/fitpass/routes/__init__.py
