"""
Couche HTTP (FastAPI) du relais.
"""
