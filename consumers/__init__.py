"""consumers/ -- API consumer identities and their RSA keys.

Layer rule: consumers/ imports from core/ and documents/ only.
It does NOT import from api/, query/, or catalog/.
api/ imports from consumers/, not the other way around.
"""
