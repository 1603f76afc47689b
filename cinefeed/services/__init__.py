"""Service layer: catalog access, feed assembly and the user library."""
