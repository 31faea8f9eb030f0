"""Real-estate lot inventory importer (CSV / XLSX -> local cache + PostgreSQL)."""

__version__ = "0.1.0"
