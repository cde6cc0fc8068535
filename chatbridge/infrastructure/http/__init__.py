"""HTTP access to the backend API."""
