"""Navigation layer: route paths, the navigator and the route gate."""
