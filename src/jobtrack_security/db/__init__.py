"""SQL schema files for the PostgreSQL team directory."""
