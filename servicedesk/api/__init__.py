"""HTTP surface of the service desk."""
