"""Archive harvester: resilient extraction and pagination over blog archives."""
