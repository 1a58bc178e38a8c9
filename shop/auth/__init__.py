"""
Authentication for the storefront API.

Design goals:
- Strategies (local + facebook/google/github) are built once and injected into the app.
- The session stores only the user id; the full user is re-fetched per request.
- Guest carts live in the signed session cookie until a user signs in.
"""
