"""query/ -- Namespace guard, filter compiler and pagination for data queries.

Layer rule: query/ imports only from core/ (and documents/ for type hints).
It does NOT import from api/, consumers/, or catalog/.
"""
