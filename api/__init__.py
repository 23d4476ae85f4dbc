"""api/ -- HTTP layer: app assembly, middleware, routes, transport models."""
