"""
Restaurant directory service package for Tattler.

The service fronts the restaurant document store, providing:
- Listing with filters, sorting and pagination
- Full-text search ranked by relevance
- Proximity search with great-circle distances
- Five-facet statistics
- Restaurant, rating and comment CRUD

Structure:
- app.main: FastAPI app, routes, and cache gate wiring.
- app.caching: Response cache and the gate that wraps route handlers.
- app.query: Pure translators from request parameters to store requests.
- app.adapters: Document store interface and in-memory implementation.
- app.directory: Request bodies and directory operations.
"""
