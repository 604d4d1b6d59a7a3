"""auth/ -- Authentication package for Threadboard.

Layer rule: auth/ imports only core/ + stdlib + third-party libraries.
It does NOT import from api/, web/, or board/.
api/ and web/ import from auth/, not the other way around.
"""
